from django.urls import path

from .views import (
    attach_media,
    deposit_return,
    extension_decision,
    extension_request,
    price_decision,
    price_override,
    record_odometer,
    record_payment,
    rental_detail,
    rental_transition,
    rentals_list,
    sign_contract,
)

app_name = "rentals"

urlpatterns: list[path] = [
    path("", rentals_list, name="rentals_list"),
    path("<int:rental_id>/", rental_detail, name="rental_detail"),

    # Workflow
    path("<int:rental_id>/odometer/<str:which>/", record_odometer, name="record_odometer"),
    path("<int:rental_id>/payment/", record_payment, name="record_payment"),
    path("<int:rental_id>/media/", attach_media, name="attach_media"),
    path("<int:rental_id>/sign/", sign_contract, name="sign_contract"),

    # Price
    path("<int:rental_id>/price/", price_override, name="price_override"),
    path("<int:rental_id>/price/<str:decision>/", price_decision, name="price_decision"),

    # Extensions
    path("<int:rental_id>/extensions/", extension_request, name="extension_request"),
    path("extensions/<int:extension_id>/<str:decision>/", extension_decision, name="extension_decision"),

    # Damage deposit
    path("<int:rental_id>/deposit-return/", deposit_return, name="deposit_return"),

    # start / complete / cancel / void
    path("<int:rental_id>/<str:action>/", rental_transition, name="rental_transition"),
]
