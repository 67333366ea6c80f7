from django.urls import path
from . import views

app_name = "orders"

urlpatterns = [
    path("orders/", views.OrderListView.as_view(), name="order-list"),
    path("orders/<int:order_id>/", views.OrderDetailView.as_view(), name="order-detail"),
    path("orders/<int:order_id>/history/", views.OrderHistoryView.as_view(), name="order-history"),
    path("orders/<int:order_id>/<str:action>/", views.OrderActionView.as_view(), name="order-action"),
]
