from koda.models.base import Base  # noqa: F401

from koda.models.user import User  # noqa: F401
from koda.models.product import Product, Automation  # noqa: F401
from koda.models.purchase import Purchase  # noqa: F401
from koda.models.conversation import Conversation, Message  # noqa: F401
from koda.models.notification import Notification  # noqa: F401
from koda.models.review import Review  # noqa: F401
