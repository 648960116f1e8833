"""
                Restaurant POS API

Ordering, menu and reporting backend for a counter-service restaurant:
kiosk and cashier order entry, menu and meal-type catalogue, and
end-of-day sales reporting.
"""

__version__ = "1.0.0"
