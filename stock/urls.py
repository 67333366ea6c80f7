from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("manufacturing-orders/<int:mo_id>/", views.ManufacturingOrderDetailView.as_view(), name="mo-detail"),
    path("manufacturing-orders/<int:mo_id>/status/", views.ManufacturingOrderStatusView.as_view(), name="mo-status"),

    path("purchase-orders/<int:po_id>/", views.PurchaseOrderDetailView.as_view(), name="po-detail"),
    path("purchase-orders/<int:po_id>/<str:action>/", views.PurchaseOrderActionView.as_view(), name="po-action"),

    path("products/<int:product_id>/material-requirements/", views.MaterialRequirementsView.as_view(), name="material-requirements"),
    path("reorder-check/", views.ReorderCheckView.as_view(), name="reorder-check"),
]
