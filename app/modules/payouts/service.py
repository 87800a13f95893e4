import stripe
from supabase import Client
from app.config.business_config import MAX_PAYOUT_RETRIES, MINIMUM_PAYOUT_AMOUNT
from app.core.time_utils import previous_month_start, utcnow_iso
from app.integrations.stripe_client import StripeClient
from app.modules.payouts.calculations import calculate_all_club_payouts, format_payout_amount
from app.modules.payouts.schemas import (
    GeneratePayoutsResponse, PayoutResponse, PeriodSummaryResponse,
    SendTransfersResponse, TransferResult
)
from datetime import date
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

# Money has left (or is leaving) the platform for these rows
SETTLED_STATUSES = ("paid", "processing")


class PayoutService:
    def __init__(self, supabase: Client, stripe_client: Optional[StripeClient] = None):
        self.supabase = supabase
        self.stripe_client = stripe_client

    @staticmethod
    def resolve_period(period: Optional[date] = None) -> str:
        """Payout periods are the first day of a month; default is last month."""
        if period is None:
            return previous_month_start().isoformat()
        return date(period.year, period.month, 1).isoformat()

    def generate_monthly_payouts(
        self,
        period: Optional[date] = None,
        club_ids: Optional[List[str]] = None
    ) -> GeneratePayoutsResponse:
        """Calculate each club's payout for the period; paid and processing rows are left as they are"""
        target_period = self.resolve_period(period)
        try:
            # Distinct-gym counts need every member's usage, so the club filter applies to clubs only
            usage = self.supabase.table("subscription_usage")\
                .select("*")\
                .eq("subscription_period", target_period)\
                .execute().data or []
            usage_club_ids = {u["club_id"] for u in usage}
            if club_ids:
                usage_club_ids &= set(club_ids)

            if not usage_club_ids:
                return GeneratePayoutsResponse(
                    period=target_period,
                    clubs_processed=0,
                    total_amount=0,
                    message="No usage data for this period"
                )

            clubs_result = self.supabase.table("clubs")\
                .select("id, name, stripe_account_id")\
                .in_("id", list(usage_club_ids))\
                .execute()
            clubs = {c["id"]: c for c in (clubs_result.data or [])}

            calculations = calculate_all_club_payouts(target_period, clubs, usage)

            existing_result = self.supabase.table("payouts_to_clubs")\
                .select("*")\
                .eq("payout_period", target_period)\
                .in_("club_id", list(usage_club_ids))\
                .execute()
            existing = {p["club_id"]: p for p in (existing_result.data or [])}

            payouts = []
            for calc in calculations:
                current = existing.get(calc.club_id)
                if current and current.get("status") in SETTLED_STATUSES:
                    logger.info(
                        f"Payout for club {calc.club_id} ({target_period}) is {current['status']}, leaving it untouched"
                    )
                    payouts.append(PayoutResponse(**current))
                    continue
                payout_data = {
                    "club_id": calc.club_id,
                    "payout_period": target_period,
                    "unlimited_amount": calc.unlimited_amount,
                    "credits_amount": calc.credits_amount,
                    "total_amount": calc.total_amount,
                    "unlimited_visits": calc.unlimited_visits,
                    "credits_visits": calc.credits_visits,
                    "total_visits": calc.total_visits,
                    "unique_users": calc.unique_users,
                }
                if not current:
                    payout_data["status"] = "pending"
                try:
                    result = self.supabase.table("payouts_to_clubs")\
                        .upsert(payout_data, on_conflict="club_id,payout_period")\
                        .execute()
                    if result.data:
                        payouts.append(PayoutResponse(**result.data[0]))
                except Exception as e:
                    logger.error(f"Failed to store payout for club {calc.club_id} ({target_period}): {e}")

            total = sum(p.total_amount for p in payouts)
            logger.info(f"Generated {len(payouts)} payout(s) for {target_period}, total {format_payout_amount(total)}")
            return GeneratePayoutsResponse(
                period=target_period,
                clubs_processed=len(payouts),
                total_amount=total,
                payouts=payouts
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to generate payouts: {str(e)}")

    def _mark(self, payout_id: str, update_data: dict) -> None:
        self.supabase.table("payouts_to_clubs")\
            .update(update_data)\
            .eq("id", payout_id)\
            .execute()

    def send_payout_transfers(
        self,
        period: Optional[date] = None,
        club_ids: Optional[List[str]] = None
    ) -> SendTransfersResponse:
        """Transfer pending payouts to the clubs' connected Stripe accounts"""
        if self.stripe_client is None:
            raise HTTPException(status_code=500, detail="Stripe is not configured")
        target_period = self.resolve_period(period)
        try:
            query = self.supabase.table("payouts_to_clubs")\
                .select("*")\
                .eq("payout_period", target_period)\
                .eq("status", "pending")
            if club_ids:
                query = query.in_("club_id", club_ids)
            pending = query.execute().data or []

            if not pending:
                return SendTransfersResponse(
                    period=target_period,
                    transfers_attempted=0,
                    transfers_succeeded=0,
                    transfers_failed=0,
                    message="No pending payouts for this period"
                )

            clubs_result = self.supabase.table("clubs")\
                .select("id, name, stripe_account_id, payouts_enabled")\
                .in_("id", list({p["club_id"] for p in pending}))\
                .execute()
            clubs = {c["id"]: c for c in (clubs_result.data or [])}

            results = []
            for payout in pending:
                club = clubs.get(payout["club_id"]) or {"id": payout["club_id"]}
                amount = float(payout.get("total_amount") or 0)
                try:
                    results.append(self._transfer_one(payout, club, amount, target_period))
                except Exception as e:
                    logger.error(f"Payout {payout['id']} for club {club['id']} ({target_period}) aborted: {e}")
                    results.append(TransferResult(club_id=club["id"], club_name=club.get("name"),
                                                  amount=amount, status="failed", message=str(e)))

            succeeded = sum(1 for r in results if r.status == "success")
            failed = sum(1 for r in results if r.status == "failed")
            logger.info(f"Payout transfers for {target_period}: {succeeded} succeeded, {failed} failed")
            return SendTransfersResponse(
                period=target_period,
                transfers_attempted=len(results),
                transfers_succeeded=succeeded,
                transfers_failed=failed,
                results=results
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to send payout transfers: {str(e)}")

    def _transfer_one(self, payout: dict, club: dict, amount: float, period: str) -> TransferResult:
        club_id = club["id"]
        club_name = club.get("name")
        try:
            if not club.get("stripe_account_id"):
                raise ValueError("Club has no Stripe account connected")
            if not club.get("payouts_enabled"):
                raise ValueError("Payouts not enabled for this club")

            if amount <= 0:
                self._mark(payout["id"], {
                    "status": "paid",
                    "transfer_completed_at": utcnow_iso(),
                    "error_message": "No transfer needed - amount is 0",
                })
                return TransferResult(club_id=club_id, club_name=club_name, amount=amount,
                                      status="success", message="Skipped - zero amount")

            if amount < MINIMUM_PAYOUT_AMOUNT:
                self._mark(payout["id"], {"error_message": f"Below minimum payout of {format_payout_amount(MINIMUM_PAYOUT_AMOUNT)}"})
                return TransferResult(club_id=club_id, club_name=club_name, amount=amount,
                                      status="skipped", message="Below minimum payout amount")

            self._mark(payout["id"], {"status": "processing", "transfer_attempted_at": utcnow_iso()})
            transfer = self.stripe_client.create_transfer(
                amount_ore=round(amount * 100),
                destination=club["stripe_account_id"],
                metadata={
                    "payout_id": payout["id"],
                    "payout_period": period,
                    "club_id": club_id,
                    "club_name": club_name or "",
                    "unlimited_amount": str(payout.get("unlimited_amount") or 0),
                    "credits_amount": str(payout.get("credits_amount") or 0),
                    "total_visits": str(payout.get("total_visits") or 0),
                },
                idempotency_key=f"payout-{payout['id']}-attempt-{payout.get('retry_count') or 0}",
            )
        except (ValueError, stripe.StripeError) as e:
            retry_count = (payout.get("retry_count") or 0) + 1
            new_status = "failed" if retry_count >= MAX_PAYOUT_RETRIES else "pending"
            logger.error(f"Payout transfer failed for club {club_id} ({period}), attempt {retry_count}: {e}")
            self._mark(payout["id"], {
                "status": new_status,
                "error_message": str(e),
                "retry_count": retry_count,
                "transfer_attempted_at": utcnow_iso(),
            })
            return TransferResult(club_id=club_id, club_name=club_name, amount=amount,
                                  status="failed", message=str(e))

        try:
            self._mark(payout["id"], {
                "status": "paid",
                "stripe_transfer_id": transfer["id"],
                "transfer_completed_at": utcnow_iso(),
                "error_message": None,
            })
        except Exception as e:
            # Row stays processing, so it is never picked up for another transfer
            logger.error(
                f"Transfer {transfer['id']} for payout {payout['id']} succeeded but could not be recorded: {e}"
            )
            return TransferResult(club_id=club_id, club_name=club_name, amount=amount, status="success",
                                  stripe_transfer_id=transfer["id"], message="Transfer sent; payout record not updated")
        return TransferResult(club_id=club_id, club_name=club_name, amount=amount,
                              status="success", stripe_transfer_id=transfer["id"])

    def get_club_payouts(self, club_id: str, limit: int = 12) -> List[PayoutResponse]:
        """Most recent payouts for a club"""
        try:
            result = self.supabase.table("payouts_to_clubs")\
                .select("*")\
                .eq("club_id", club_id)\
                .order("payout_period", desc=True)\
                .limit(limit)\
                .execute()
            return [PayoutResponse(**p) for p in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_period_summary(self, period: Optional[date] = None) -> PeriodSummaryResponse:
        target_period = self.resolve_period(period)
        try:
            result = self.supabase.table("payouts_to_clubs")\
                .select("*")\
                .eq("payout_period", target_period)\
                .execute()
            payouts = result.data or []
            total = sum(float(p.get("total_amount") or 0) for p in payouts)
            return PeriodSummaryResponse(
                period=target_period,
                total_clubs=len(payouts),
                total_amount=total,
                total_visits=sum(p.get("total_visits") or 0 for p in payouts),
                unlimited_amount=sum(float(p.get("unlimited_amount") or 0) for p in payouts),
                credits_amount=sum(float(p.get("credits_amount") or 0) for p in payouts),
                pending_count=sum(1 for p in payouts if p.get("status") == "pending"),
                paid_count=sum(1 for p in payouts if p.get("status") == "paid"),
                failed_count=sum(1 for p in payouts if p.get("status") == "failed"),
                formatted_total=format_payout_amount(total)
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
