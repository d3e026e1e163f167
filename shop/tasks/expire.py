# shop/tasks/expire.py
from shop.celery_worker import celery_app
from shop.data.database import SessionLocal
from shop.domain.pricing import ZERO
from shop.repos.cart_repo import CartRepo
from shop.utils.clock import utcnow
from shop.utils.logging import get_logger

logger = get_logger(__name__)


def expire_carts(db) -> dict:
    """Delete expired guest carts, empty expired customer carts."""
    repo = CartRepo(db)
    now = utcnow()

    carts = repo.get_expired_carts(now)
    logger.info(f"Found {len(carts)} carts to expire")

    deleted = cleared = 0
    for cart in carts:
        if cart.customer_id is None:
            repo.delete_cart(cart)
            deleted += 1
            continue

        # the customer keeps the cart row; the next access gets a fresh one anyway
        if cart.items or cart.discount_code:
            cart.items.clear()
            cart.subtotal = cart.tax = cart.shipping = cart.discount = cart.total = ZERO
            cart.discount_code = None
            cart.version = cart.version + 1
            cleared += 1

    repo.commit()
    return {"deleted": deleted, "cleared": cleared}


@celery_app.task(name="shop.tasks.expire.expire_carts_task")
def expire_carts_task():
    logger.info("Expire carts task started")

    db = SessionLocal()
    try:
        result = expire_carts(db)
        logger.info(f"Expire carts task done: {result}")
        return result
    except Exception:
        db.rollback()
        logger.exception("Expire carts task failed")
        raise
    finally:
        db.close()
