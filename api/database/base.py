from api.models.base import Base  # noqa

# Import all the models, so that Base has them before being
# imported by Alembic.
# This ensures that Alembic's autogenerate can "see" the models.
from api.models import *  # noqa
