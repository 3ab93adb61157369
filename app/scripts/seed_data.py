# app/scripts/seed_data.py
import asyncio
from app.core.db import init_db, close_db
from app.models.catalog import Category, Product
from app.models.staff import StaffRole, StaffUser


async def seed():
    # Create menu categories
    mains, _ = await Category.get_or_create(name="Mains", defaults={"description": "Main dishes"})
    drinks, _ = await Category.get_or_create(name="Drinks", defaults={"description": "Cold and hot drinks"})
    print("Categories:", mains.id, drinks.id)

    # Create products
    p1, _ = await Product.get_or_create(name="Margherita Pizza", defaults={"price": "10.00", "category": mains})
    p2, _ = await Product.get_or_create(name="Caesar Salad", defaults={"price": "7.50", "category": mains})
    p3, _ = await Product.get_or_create(name="Lemonade", defaults={"price": "2.50", "category": drinks})

    # If existing, make sure they can be ordered again (idempotent)
    for product in (p1, p2, p3):
        product.is_available = True
        await product.save()

    print("Products:", str(p1.id), str(p2.id), str(p3.id))

    # Create staff directory entries
    staff = [
        ("manager", "Morgan Manager", StaffRole.MANAGER),
        ("chef", "Casey Chef", StaffRole.KITCHEN_STAFF),
        ("driver1", "Dana Driver", StaffRole.DELIVERY_STAFF),
        ("driver2", "Drew Driver", StaffRole.DELIVERY_STAFF),
    ]
    for username, full_name, role in staff:
        user, _ = await StaffUser.get_or_create(
            username=username, defaults={"full_name": full_name, "role": role, "enabled": True}
        )
        print(f"Staff {role.value}:", user.username, user.id)

    print("Seed data loaded.")


async def main():
    await init_db()
    await seed()
    await close_db()

if __name__ == "__main__":
    asyncio.run(main())
