# clinic_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from clinic_core.audit.api.views import AuditEntryViewSet
from clinic_core.clinical.api.views import DiagnosisViewSet
from clinic_core.encounters.api.views import EncounterViewSet, QueueViewSet

router = DefaultRouter()

router.register(r"encounters", EncounterViewSet, basename="encounter")
router.register(r"queues", QueueViewSet, basename="queue")
router.register(r"diagnoses", DiagnosisViewSet, basename="diagnosis")
router.register(r"audit/entries", AuditEntryViewSet, basename="audit-entries")

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    *router.urls,
]
