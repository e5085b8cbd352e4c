"""Page drivers for the import notification form, one module per page."""

from tests.performance.pages.commodity import CommodityPage
from tests.performance.pages.dashboard import DashboardPage
from tests.performance.pages.home import HomePage
from tests.performance.pages.origin import OriginPage
from tests.performance.pages.purpose import PurposePage
from tests.performance.pages.review import ReviewPage
from tests.performance.pages.transport import TransportPage

__all__ = [
    "CommodityPage",
    "DashboardPage",
    "HomePage",
    "OriginPage",
    "PurposePage",
    "ReviewPage",
    "TransportPage",
]
