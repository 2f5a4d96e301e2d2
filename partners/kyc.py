import logging

from orders.validators import KYCNotApproved, PartnerOffline

from .models import KYCStatus, PartnerProfile

logger = logging.getLogger(__name__)


def verification_status(partner_id) -> str:
    """Único dato que expone el colaborador de KYC."""
    status = (
        PartnerProfile.objects.filter(pk=partner_id)
        .values_list("kyc_status", flat=True)
        .first()
    )
    return status or KYCStatus.NOT_SUBMITTED


def is_approved(partner_id) -> bool:
    return verification_status(partner_id) == KYCStatus.APPROVED


def ensure_can_claim(partner_id) -> None:
    """Gate de captura: KYC aprobado y online, leído fresco de la base."""
    row = (
        PartnerProfile.objects.filter(pk=partner_id)
        .values("kyc_status", "is_online")
        .first()
    )
    if row is None or row["kyc_status"] != KYCStatus.APPROVED:
        raise KYCNotApproved(f"repartidor {partner_id} sin KYC aprobado")
    if not row["is_online"]:
        raise PartnerOffline(f"repartidor {partner_id} está offline")


def set_online(partner_id, online: bool) -> bool:
    """
    Cambia el flag online. Pasar a online exige KYC aprobado, y se aplica
    como UPDATE condicional para no competir con una revocación de KYC.
    """
    qs = PartnerProfile.objects.filter(pk=partner_id)
    if online:
        updated = qs.filter(kyc_status=KYCStatus.APPROVED).update(is_online=True)
        if not updated:
            raise KYCNotApproved(f"repartidor {partner_id} sin KYC aprobado")
    else:
        updated = qs.update(is_online=False)
        if not updated:
            raise PartnerProfile.DoesNotExist(partner_id)
    logger.info("partner %s online=%s", partner_id, online)
    return online


def set_verification_status(partner_id, status: str) -> None:
    """Lo usa el colaborador de KYC; perder la aprobación saca al repartidor de línea."""
    fields = {"kyc_status": status}
    if status != KYCStatus.APPROVED:
        fields["is_online"] = False
    if not PartnerProfile.objects.filter(pk=partner_id).update(**fields):
        raise PartnerProfile.DoesNotExist(partner_id)


def eligible_partner_ids() -> list:
    """Suscriptores del fan-out: online y con KYC aprobado."""
    return list(
        PartnerProfile.objects.filter(is_online=True, kyc_status=KYCStatus.APPROVED)
        .order_by("pk")
        .values_list("pk", flat=True)
    )
