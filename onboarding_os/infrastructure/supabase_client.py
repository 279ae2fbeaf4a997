from typing import Any, Dict, List, Optional, Sequence

import structlog  # type: ignore[import-not-found]
from onboarding_os.core.config import settings
from onboarding_os.core.exceptions import (
    AuthenticationError,
    StorageError,
    SupabaseError,
)
from pybreaker import CircuitBreaker  # type: ignore[import-not-found]
from tenacity import retry  # type: ignore[import-not-found]
from tenacity import stop_after_attempt, wait_exponential

import supabase  # type: ignore[import-not-found]

logger = structlog.get_logger()

# Circuit breaker for Supabase calls
supabase_breaker = CircuitBreaker(fail_max=5, reset_timeout=60)

STEP_PROGRESS_SELECT = "*, step:onboarding_steps(*)"


def _step_sort_key(row: Dict[str, Any]) -> int:
    step = row.get("step") or {}
    return step.get("step_order", 0)


class SupabaseClient:
    """
    Store for flows, onboardings and their step progress.

    Reads and conditional updates are retried; inserts are not, so a retry
    can never create a duplicate row. Conditional updates (transition_*)
    only match rows still in the expected status and return None when
    another writer got there first.
    """

    def __init__(self):
        self._client: Any = None
        self._storage_bucket_checked = False

    @property
    def client(self) -> Any:
        # Created on first use so importing the module needs no credentials
        if self._client is None:
            client_options: Any = None
            if hasattr(supabase, "ClientOptions"):
                client_options = supabase.ClientOptions(  # type: ignore[attr-defined]
                    auto_refresh_token=False,
                    persist_session=False,
                )
            self._client = supabase.create_client(  # type: ignore[attr-defined]
                settings.supabase_url, settings.supabase_service_key, options=client_options
            )
        return self._client

    # ------------------------------------------------------------------
    # Auth / profiles
    # ------------------------------------------------------------------

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def verify_token_and_get_user(self, token: str) -> Dict[str, Any]:
        """Verify a Supabase access token and return the user. Raises AuthenticationError if invalid."""
        try:
            response = self.client.auth.get_user(token)
            if response and response.user:
                return {
                    "id": response.user.id,
                    "email": response.user.email,
                }
            raise AuthenticationError("Invalid or expired token")
        except AuthenticationError:
            raise
        except Exception as e:
            logger.error("verify_token_error", error=str(e))
            raise AuthenticationError("Invalid or expired token")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table("profiles")
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("get_profile_error", user_id=user_id, error=str(e))
            raise SupabaseError(f"Failed to fetch profile: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def get_workspace(self, workspace_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table("workspaces")
                .select("*")
                .eq("id", workspace_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("get_workspace_error", workspace_id=workspace_id, error=str(e))
            raise SupabaseError(f"Failed to fetch workspace: {str(e)}")

    # ------------------------------------------------------------------
    # Flow definitions
    # ------------------------------------------------------------------

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def get_flow(self, flow_id: str) -> Optional[Dict[str, Any]]:
        """Flow with its steps ordered by step_order, or None."""
        try:
            response = (
                self.client.table("onboarding_flows")
                .select("*, steps:onboarding_steps(*)")
                .eq("id", flow_id)
                .limit(1)
                .execute()
            )
            if not response.data:
                return None
            flow = response.data[0]
            flow["steps"] = sorted(flow.get("steps") or [], key=lambda s: s.get("step_order", 0))
            return flow
        except Exception as e:
            logger.error("get_flow_error", flow_id=flow_id, error=str(e))
            raise SupabaseError(f"Failed to fetch flow: {str(e)}")

    async def create_flow(
        self, record: Dict[str, Any], step_rows: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Insert a flow and its steps. The flow row is removed if the steps fail."""
        try:
            response = self.client.table("onboarding_flows").insert(record).execute()
            if not response.data:
                raise SupabaseError("Failed to create flow")
            flow = response.data[0]
        except SupabaseError:
            raise
        except Exception as e:
            logger.error("create_flow_error", error=str(e))
            raise SupabaseError(f"Failed to create flow: {str(e)}")

        steps: List[Dict[str, Any]] = []
        if step_rows:
            try:
                rows = [{**row, "flow_id": flow["id"]} for row in step_rows]
                steps = self.client.table("onboarding_steps").insert(rows).execute().data or []
            except Exception as e:
                logger.error("create_flow_steps_error", flow_id=flow["id"], error=str(e))
                try:
                    self.client.table("onboarding_flows").delete().eq("id", flow["id"]).execute()
                    logger.info("orphaned_flow_deleted", flow_id=flow["id"])
                except Exception as delete_error:
                    logger.error("failed_to_delete_orphaned_flow", flow_id=flow["id"], error=str(delete_error))
                raise SupabaseError(f"Failed to create flow steps: {str(e)}")

        flow["steps"] = sorted(steps, key=lambda s: s.get("step_order", 0))
        logger.info("flow_created", flow_id=flow["id"], step_count=len(steps))
        return flow

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def update_flow(self, flow_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table("onboarding_flows")
                .update(updates)
                .eq("id", flow_id)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("update_flow_error", flow_id=flow_id, error=str(e))
            raise SupabaseError(f"Failed to update flow: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def transition_flow(
        self, flow_id: str, expected_status: str, updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Conditional update: applies only while the flow is in expected_status."""
        try:
            response = (
                self.client.table("onboarding_flows")
                .update(updates)
                .eq("id", flow_id)
                .eq("status", expected_status)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("transition_flow_error", flow_id=flow_id, error=str(e))
            raise SupabaseError(f"Failed to update flow status: {str(e)}")

    async def replace_flow_steps(
        self, flow_id: str, step_rows: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        try:
            self.client.table("onboarding_steps").delete().eq("flow_id", flow_id).execute()
            if not step_rows:
                return []
            rows = [{**row, "flow_id": flow_id} for row in step_rows]
            inserted = self.client.table("onboarding_steps").insert(rows).execute().data or []
            logger.info("flow_steps_replaced", flow_id=flow_id, step_count=len(inserted))
            return sorted(inserted, key=lambda s: s.get("step_order", 0))
        except Exception as e:
            logger.error("replace_flow_steps_error", flow_id=flow_id, error=str(e))
            raise SupabaseError(f"Failed to save flow steps: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def update_step_orders(self, flow_id: str, ordered_step_ids: Sequence[str]) -> None:
        try:
            for position, step_id in enumerate(ordered_step_ids):
                (
                    self.client.table("onboarding_steps")
                    .update({"step_order": position})
                    .eq("id", step_id)
                    .eq("flow_id", flow_id)
                    .execute()
                )
            logger.info("flow_steps_reordered", flow_id=flow_id, step_count=len(ordered_step_ids))
        except Exception as e:
            logger.error("update_step_orders_error", flow_id=flow_id, error=str(e))
            raise SupabaseError(f"Failed to reorder steps: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def delete_flow(self, flow_id: str) -> None:
        try:
            self.client.table("onboarding_steps").delete().eq("flow_id", flow_id).execute()
            self.client.table("onboarding_flows").delete().eq("id", flow_id).execute()
            logger.info("flow_deleted", flow_id=flow_id)
        except Exception as e:
            logger.error("delete_flow_error", flow_id=flow_id, error=str(e))
            raise SupabaseError(f"Failed to delete flow: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def count_onboardings_for_flow(
        self, flow_id: str, statuses: Optional[Sequence[str]] = None
    ) -> int:
        try:
            query = (
                self.client.table("client_onboardings")
                .select("id", count="exact")
                .eq("flow_id", flow_id)
            )
            if statuses:
                query = query.in_("status", list(statuses))
            response = query.execute()
            return response.count or 0
        except Exception as e:
            logger.error("count_onboardings_error", flow_id=flow_id, error=str(e))
            raise SupabaseError(f"Failed to count onboardings: {str(e)}")

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def get_client(self, client_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table("clients")
                .select("*")
                .eq("id", client_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("get_client_error", client_id=client_id, error=str(e))
            raise SupabaseError(f"Failed to fetch client: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def list_client_onboardings(self, client_id: str) -> List[Dict[str, Any]]:
        """Onboardings of a client, most recent first."""
        try:
            response = (
                self.client.table("client_onboardings")
                .select("*")
                .eq("client_id", client_id)
                .order("created_at", desc=True)
                .execute()
            )
            return response.data or []
        except Exception as e:
            logger.error("list_client_onboardings_error", client_id=client_id, error=str(e))
            raise SupabaseError(f"Failed to fetch onboardings: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def delete_client(self, client_id: str) -> None:
        """Delete a client with its onboardings and their step progress, children first."""
        try:
            onboardings = (
                self.client.table("client_onboardings")
                .select("id")
                .eq("client_id", client_id)
                .execute()
            ).data or []
            onboarding_ids = [row["id"] for row in onboardings]
            if onboarding_ids:
                (
                    self.client.table("client_step_progress")
                    .delete()
                    .in_("client_onboarding_id", onboarding_ids)
                    .execute()
                )
                self.client.table("client_onboardings").delete().eq("client_id", client_id).execute()
            self.client.table("clients").delete().eq("id", client_id).execute()
            logger.info("client_deleted", client_id=client_id, onboarding_count=len(onboarding_ids))
        except Exception as e:
            logger.error("delete_client_error", client_id=client_id, error=str(e))
            raise SupabaseError(f"Failed to delete client: {str(e)}")

    # ------------------------------------------------------------------
    # Onboardings
    # ------------------------------------------------------------------

    async def create_onboarding(
        self, record: Dict[str, Any], step_rows: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Insert an onboarding with one progress row per step. If the progress
        rows cannot be written the onboarding is removed again, so an
        onboarding never exists without its full step set.
        """
        try:
            response = self.client.table("client_onboardings").insert(record).execute()
            if not response.data:
                raise SupabaseError("Failed to create onboarding")
            onboarding = response.data[0]
        except SupabaseError:
            raise
        except Exception as e:
            logger.error("create_onboarding_error", client_id=record.get("client_id"), error=str(e))
            raise SupabaseError(f"Failed to create onboarding: {str(e)}")

        try:
            rows = [{**row, "client_onboarding_id": onboarding["id"]} for row in step_rows]
            if rows:
                self.client.table("client_step_progress").insert(rows).execute()
        except Exception as e:
            logger.error("create_step_progress_error", onboarding_id=onboarding["id"], error=str(e))
            try:
                self.client.table("client_onboardings").delete().eq("id", onboarding["id"]).execute()
                logger.info("orphaned_onboarding_deleted", onboarding_id=onboarding["id"])
            except Exception as delete_error:
                logger.error(
                    "failed_to_delete_orphaned_onboarding",
                    onboarding_id=onboarding["id"],
                    error=str(delete_error),
                )
            raise SupabaseError(f"Failed to create step progress: {str(e)}")

        logger.info("onboarding_created", onboarding_id=onboarding["id"], step_count=len(step_rows))
        return onboarding

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def get_onboarding(self, onboarding_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table("client_onboardings")
                .select("*")
                .eq("id", onboarding_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("get_onboarding_error", onboarding_id=onboarding_id, error=str(e))
            raise SupabaseError(f"Failed to fetch onboarding: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def get_onboarding_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table("client_onboardings")
                .select("*")
                .eq("onboarding_link_token", token)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            # never log the token itself
            logger.error("get_onboarding_by_token_error", error=str(e))
            raise SupabaseError("Failed to fetch onboarding")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def get_step_progress(
        self, step_progress_id: str, onboarding_id: str
    ) -> Optional[Dict[str, Any]]:
        """Step progress row with its template under "step", only if it belongs to the onboarding."""
        try:
            response = (
                self.client.table("client_step_progress")
                .select(STEP_PROGRESS_SELECT)
                .eq("id", step_progress_id)
                .eq("client_onboarding_id", onboarding_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("get_step_progress_error", step_progress_id=step_progress_id, error=str(e))
            raise SupabaseError(f"Failed to fetch step progress: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def list_step_progress(self, onboarding_id: str) -> List[Dict[str, Any]]:
        """All progress rows of an onboarding in flow step order."""
        try:
            response = (
                self.client.table("client_step_progress")
                .select(STEP_PROGRESS_SELECT)
                .eq("client_onboarding_id", onboarding_id)
                .execute()
            )
            return sorted(response.data or [], key=_step_sort_key)
        except Exception as e:
            logger.error("list_step_progress_error", onboarding_id=onboarding_id, error=str(e))
            raise SupabaseError(f"Failed to fetch step progress: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def transition_step_progress(
        self, step_progress_id: str, expected_status: str, updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Compare-and-swap on client_step_progress.status.

        Returns the updated row, or None when the row is no longer in
        expected_status (another request moved it first).
        """
        try:
            response = (
                self.client.table("client_step_progress")
                .update(updates)
                .eq("id", step_progress_id)
                .eq("status", expected_status)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("transition_step_progress_error", step_progress_id=step_progress_id, error=str(e))
            raise SupabaseError(f"Failed to update step progress: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def transition_onboarding(
        self, onboarding_id: str, expected_statuses: Sequence[str], updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Compare-and-swap on client_onboardings.status. None if no row matched."""
        try:
            response = (
                self.client.table("client_onboardings")
                .update(updates)
                .eq("id", onboarding_id)
                .in_("status", list(expected_statuses))
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("transition_onboarding_error", onboarding_id=onboarding_id, error=str(e))
            raise SupabaseError(f"Failed to update onboarding: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def touch_onboarding_activity(self, onboarding_id: str, at: str) -> None:
        try:
            (
                self.client.table("client_onboardings")
                .update({"last_activity_at": at})
                .eq("id", onboarding_id)
                .execute()
            )
        except Exception as e:
            logger.error("touch_onboarding_activity_error", onboarding_id=onboarding_id, error=str(e))
            raise SupabaseError(f"Failed to update onboarding activity: {str(e)}")

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def find_inactive_onboardings(self, status: str, cutoff: str) -> List[Dict[str, Any]]:
        """Onboardings in status whose last activity is older than cutoff."""
        try:
            response = (
                self.client.table("client_onboardings")
                .select("*")
                .eq("status", status)
                .lt("last_activity_at", cutoff)
                .execute()
            )
            return response.data or []
        except Exception as e:
            logger.error("find_inactive_onboardings_error", error=str(e))
            raise SupabaseError(f"Failed to fetch inactive onboardings: {str(e)}")

    # ------------------------------------------------------------------
    # Notification / activity logs
    # ------------------------------------------------------------------

    @supabase_breaker
    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10), stop=stop_after_attempt(3)
    )
    async def has_recent_notification(
        self, onboarding_id: str, notification_type: str, since: str
    ) -> bool:
        try:
            response = (
                self.client.table("notification_logs")
                .select("id")
                .eq("client_onboarding_id", onboarding_id)
                .eq("notification_type", notification_type)
                .gte("sent_at", since)
                .limit(1)
                .execute()
            )
            return bool(response.data)
        except Exception as e:
            logger.error("has_recent_notification_error", onboarding_id=onboarding_id, error=str(e))
            raise SupabaseError(f"Failed to check notification log: {str(e)}")

    async def log_notification(
        self,
        onboarding_id: Optional[str],
        notification_type: str,
        recipient_email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            self.client.table("notification_logs").insert(
                {
                    "client_onboarding_id": onboarding_id,
                    "notification_type": notification_type,
                    "recipient_email": recipient_email,
                    "metadata": metadata or {},
                }
            ).execute()
        except Exception as e:
            logger.error("log_notification_error", onboarding_id=onboarding_id, error=str(e))
            raise SupabaseError(f"Failed to log notification: {str(e)}")

    async def log_activity(
        self,
        workspace_id: Optional[str],
        action: str,
        client_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            self.client.table("activity_logs").insert(
                {
                    "workspace_id": workspace_id,
                    "client_id": client_id,
                    "action": action,
                    "metadata": metadata or {},
                }
            ).execute()
        except Exception as e:
            logger.error("log_activity_error", action=action, error=str(e))
            raise SupabaseError(f"Failed to write activity log: {str(e)}")

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _ensure_bucket(self, bucket: str) -> None:
        try:
            self.client.storage.create_bucket(bucket, options={"public": True})
            logger.info("storage_bucket_created", bucket=bucket)
        except Exception as e:
            # Already exists is fine; anything else surfaces on the retried upload
            logger.warning("storage_bucket_create_failed", bucket=bucket, error=str(e))

    async def upload_file(self, path: str, content: bytes, content_type: str) -> str:
        """
        Upload to the configured bucket and return the public URL.

        The bucket is created and the upload retried once when storage
        reports the bucket missing.
        """
        bucket = settings.storage_bucket
        storage = self.client.storage

        def _upload() -> None:
            storage.from_(bucket).upload(
                path=path, file=content, file_options={"content-type": content_type, "upsert": "false"}
            )

        try:
            try:
                _upload()
            except Exception as e:
                if "bucket not found" not in str(e).lower() or self._storage_bucket_checked:
                    raise
                self._storage_bucket_checked = True
                self._ensure_bucket(bucket)
                _upload()

            public_url = storage.from_(bucket).get_public_url(path)
            logger.info("file_upload_success", bucket=bucket, path=path, size=len(content))
            return public_url
        except Exception as e:
            logger.error("file_upload_error", bucket=bucket, path=path, error=str(e))
            raise StorageError("Failed to upload file")


supabase_client = SupabaseClient()
