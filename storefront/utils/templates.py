from fastapi.templating import Jinja2Templates

from storefront.cart.state import format_price
from storefront.config import TEMPLATES_DIR

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["price"] = format_price
