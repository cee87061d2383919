"""Cache keys for common data."""

PRODUCTS = "products"
CENTERS = "centers"
USERS = "users"
VISITORS = "visitors"
DASHBOARD_STATS = "dashboard_stats"
INVENTORY_DATA = "inventory_data"
SALES_DATA = "sales_data"
MATERIAL_IN = "material_in"
MATERIAL_OUT = "material_out"
PURCHASES = "purchases"
ENQUIRIES = "enquiries"
