"""Flask CLI commands for admin operations."""
import click


def _parse_variant_option(raw):
    """``"Warna=Merah,Biru"`` -> ``{"name": "Warna", "values": ["Merah", "Biru"]}``."""
    if "=" not in raw:
        raise click.BadParameter(f"Expected Type=Value1,Value2, got {raw!r}")
    name, values = raw.split("=", 1)
    return {
        "name": name.strip(),
        "values": [v.strip() for v in values.split(",") if v.strip()],
    }


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables and seed the top-level categories."""
        from marketplace.extensions import db
        from marketplace.models.category import Category
        from marketplace.services.store_service import slugify

        db.create_all()

        defaults = ["Fashion", "Elektronik", "Rumah Tangga", "Kecantikan", "Olahraga"]
        for name in defaults:
            slug = slugify(name)
            if not Category.query.filter_by(slug=slug).first():
                db.session.add(Category(name=name, slug=slug))
        db.session.commit()

        click.echo("Database initialized with default categories.")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Seed a verified demo store with products (idempotent)."""
        from marketplace.extensions import db
        from marketplace.models.category import Category
        from marketplace.models.product import Product
        from marketplace.models.store import Store
        from marketplace.services import product_service

        if Product.query.first():
            click.echo("Products already exist, skipping demo seed.")
            return

        category = Category.query.filter_by(slug="fashion").first()
        if not category:
            category = Category(name="Fashion", slug="fashion")
            db.session.add(category)

        store = Store.query.filter_by(owner_id="demo-seller").first()
        if not store:
            store = Store(
                owner_id="demo-seller",
                name="Toko Demo",
                slug="toko-demo",
                city="Bandung",
                province="Jawa Barat",
                verification_status="VERIFIED",
            )
            db.session.add(store)
        db.session.commit()

        demo_products = [
            ("Kaos Polos Katun", 75000, 40, [
                {"name": "Warna", "values": ["Hitam", "Putih", "Navy"]},
                {"name": "Ukuran", "values": ["S", "M", "L", "XL"]},
            ]),
            ("Kemeja Batik Pria", 185000, 25, [
                {"name": "Ukuran", "values": ["M", "L", "XL"]},
            ]),
            ("Tas Rajut Handmade", 120000, 12, []),
            ("Hijab Voal Premium", 55000, 60, [
                {"name": "Warna", "values": ["Dusty Pink", "Sage", "Mocca"]},
            ]),
        ]
        for title, price, stock, types in demo_products:
            product = product_service.create_product(
                store.owner_id,
                {
                    "title": title,
                    "description": f"{title} dari Toko Demo.",
                    "category_id": category.id,
                    "price": price,
                    "stock": stock,
                    "variant_types": types,
                    "combinations": [],
                },
            )
            for combo in product.combinations:
                combo.price = price
                combo.stock = stock
            product.moderation_status = "APPROVED"
        db.session.commit()
        click.echo(f"Seeded {len(demo_products)} demo products.")

    @app.cli.command("create-product")
    @click.option("--title", required=True)
    @click.option("--price", required=True, type=int, help="Price in rupiah")
    @click.option("--stock", default=0, type=int)
    @click.option("--owner", "owner_id", required=True, help="Store owner user ID")
    @click.option("--category-id", required=True, type=int)
    @click.option(
        "--variant",
        "variants",
        multiple=True,
        help='Variant type and values, e.g. "Warna=Merah,Biru". Repeatable.',
    )
    def create_product(title, price, stock, owner_id, category_id, variants):
        """Create a product directly (for testing)."""
        from marketplace.errors import MarketplaceError
        from marketplace.models.product import format_rupiah
        from marketplace.services import product_service

        types = [_parse_variant_option(v) for v in variants]
        try:
            product = product_service.create_product(
                owner_id,
                {
                    "title": title,
                    "description": title,
                    "category_id": category_id,
                    "price": price,
                    "stock": stock,
                    "variant_types": types,
                },
            )
        except MarketplaceError as e:
            raise click.ClickException(e.message)

        click.echo(
            f"Created: #{product.id} {title} {format_rupiah(price)} "
            f"({len(product.combinations)} combinations)"
        )

    @app.cli.command("stats")
    def stats():
        """Show store, product and order statistics."""
        from marketplace.models.product import format_rupiah
        from marketplace.services import order_service, product_service, store_service

        click.echo("Stores:")
        for status, count in sorted(store_service.get_store_stats().items()):
            click.echo(f"  {status}: {count}")

        s = product_service.get_stats()
        click.echo(f"Total products: {sum(s.values())}")
        for status, count in sorted(s.items()):
            click.echo(f"  {status}: {count}")

        orders = order_service.get_order_stats()
        click.echo(f"Orders: {orders['orders']} ({format_rupiah(orders['revenue'])})")

    @app.cli.command("refresh-sales")
    def refresh_sales():
        """Recompute total_sold for every product."""
        from marketplace.workers.sales import refresh_total_sold

        count = refresh_total_sold()
        click.echo(f"Refreshed sales counters for {count or 0} products.")
