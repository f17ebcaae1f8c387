from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from dealflow.core.config import get_settings
from dealflow.core.database import Base
from dealflow.admin import models as admin_models  # noqa: F401
from dealflow.deals import models as deal_models  # noqa: F401
from dealflow.pins import models as pin_models  # noqa: F401
from dealflow.reps import models as rep_models  # noqa: F401
from dealflow.training import models as training_models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DATABASE_URL (via Settings) wins over alembic.ini.
config.set_main_option("sqlalchemy.url", get_settings().database_url.replace("%", "%%"))

target_metadata = Base.metadata

# Money columns are Numeric(18, 2); autogenerate must notice precision changes.
COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, **COMPARE_OPTIONS)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
