from django.urls import path
from .views import (
    cancel_order,
    claim_order,
    create_order,
    get_order,
    order_eta,
    order_history,
    reject_order,
    update_status,
)

urlpatterns = [
    path("orders/<uuid:order_id>", get_order),
    path("orders/<uuid:order_id>/status", update_status),
    path("orders/<uuid:order_id>/cancel", cancel_order),
    path("orders/<uuid:order_id>/claim", claim_order),
    path("orders/<uuid:order_id>/reject", reject_order),
    path("orders/<uuid:order_id>/history", order_history),
    path("orders/<uuid:order_id>/eta", order_eta),
    path("orders", create_order),
]
