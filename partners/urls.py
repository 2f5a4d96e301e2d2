from django.urls import path
from .views import (
    available_orders,
    create_withdrawal,
    delivery_history,
    partner_earnings,
    post_location,
    process_withdrawal,
    set_online,
)

urlpatterns = [
    path("partners/<int:partner_id>/orders/available", available_orders),
    path("partners/<int:partner_id>/orders/delivered", delivery_history),
    path("partners/<int:partner_id>/online", set_online),
    path("partners/<int:partner_id>/location", post_location),
    path("partners/<int:partner_id>/earnings", partner_earnings),
    path("partners/<int:partner_id>/withdrawals", create_withdrawal),
    path("withdrawals/<int:withdrawal_id>/process", process_withdrawal),
]
