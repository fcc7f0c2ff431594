"""初始化数据命令行入口。"""

import argparse
import logging
import os

from esurat_api.core.logging import setup_logging
from esurat_api.db.session import SessionLocal, engine
from esurat_api.db.base import Base
from esurat_api.services.bootstrap import seed_defaults

logger = logging.getLogger("esurat_api.seed")


def main(argv: list[str] | None = None) -> None:
    """写入默认权限、角色、分类、批示意见与系统设置。"""
    parser = argparse.ArgumentParser(description="Seed E-Surat default data.")
    parser.add_argument("--create-tables", action="store_true", help="create missing tables before seeding")
    parser.add_argument("--admin-email", default=os.getenv("ESURAT_SEED_ADMIN_EMAIL"))
    parser.add_argument("--admin-password", default=os.getenv("ESURAT_SEED_ADMIN_PASSWORD"))
    args = parser.parse_args(argv)

    setup_logging()
    if args.create_tables:
        import esurat_api.models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("tables ensured")

    with SessionLocal() as db:
        summary = seed_defaults(db, admin_email=args.admin_email, admin_password=args.admin_password)
        db.commit()
    logger.info(
        "seed done permissions+%s roles=%s categories+%s instructions+%s settings+%s admin_created=%s",
        summary.permissions,
        summary.roles,
        summary.categories,
        summary.instructions,
        summary.settings,
        summary.admin_created,
    )


if __name__ == "__main__":
    main()
