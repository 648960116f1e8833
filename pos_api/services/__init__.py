"""
                        Services Module

Business logic behind the API routes.

Services:
    - orders: order creation and active order board
    - menu: menu items, inventory, meal types and staff
    - reports: revenue, X and Z reports
    - analytics: product usage, best sellers, sales per category
    - inventory: low stock, restock report, stock updates
    - pricing: meal and order totals shared by server and kiosk
    - cart / kiosk_client: client-side order building and submission
    - excel_manager: Thread-safe Excel export of Z reports
"""
