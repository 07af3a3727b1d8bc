"""
URL configuration for license API endpoints.
"""

from django.urls import path

from api.v1.licenses import views

app_name = "licenses"

urlpatterns = [
    path("batch", views.BatchOperationsView.as_view(), name="license-batch"),
    path(
        "orders/<uuid:order_id>/issue",
        views.IssueLicensesView.as_view(),
        name="issue-licenses",
    ),
    path("<str:license_key>/validate", views.ValidateLicenseView.as_view(), name="validate-license"),
    path(
        "<str:license_key>/validate/jwt",
        views.ValidateLicenseTokenView.as_view(),
        name="validate-license-jwt",
    ),
    path("<str:license_key>/activate", views.ActivateLicenseView.as_view(), name="activate-license"),
    path(
        "<str:license_key>/deactivate",
        views.DeactivateLicenseView.as_view(),
        name="deactivate-license",
    ),
    path("<str:license_key>/status", views.LicenseStatusView.as_view(), name="license-status"),
    path(
        "<str:license_key>/activations",
        views.ActivationHistoryView.as_view(),
        name="activation-history",
    ),
    path(
        "<str:license_key>/activations/revoke",
        views.RevokeActivationView.as_view(),
        name="revoke-activation",
    ),
    path("<str:license_key>/suspend", views.SuspendLicenseView.as_view(), name="suspend-license"),
    path(
        "<str:license_key>/reactivate",
        views.ReactivateLicenseView.as_view(),
        name="reactivate-license",
    ),
    path("<str:license_key>/revoke", views.RevokeLicenseView.as_view(), name="revoke-license"),
    path("<str:license_key>/extend", views.ExtendLicenseView.as_view(), name="extend-license"),
]
