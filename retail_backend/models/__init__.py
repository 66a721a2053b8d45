# retail_backend/models/__init__.py
from retail_backend.models.sequence_models import SequenceCounter
from retail_backend.models.user_models import User
from retail_backend.models.customer_models import Customer
from retail_backend.models.product_models import Product, ProductPurchase, LedgerReason
from retail_backend.models.order_models import OrderStatus, Sale, PreOrder, SalesReturn
from retail_backend.models.finance_models import Expense, VendorTransaction
