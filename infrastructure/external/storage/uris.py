"""Request path builders.

The batchable builders return the exact command string a batch request
expects in its ``op`` field, and are also used verbatim as the path of the
corresponding single call.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from .entry import encoded_entry, encoded_entry_without_key, urlsafe_b64


def _bool(value: bool) -> str:
    return "true" if value else "false"


# Batchable commands

def uri_stat(bucket: str, key: str) -> str:
    return f"/stat/{encoded_entry(bucket, key)}"


def uri_delete(bucket: str, key: str) -> str:
    return f"/delete/{encoded_entry(bucket, key)}"


def uri_copy(src_bucket: str, src_key: str, dest_bucket: str, dest_key: str, force: bool = False) -> str:
    return (
        f"/copy/{encoded_entry(src_bucket, src_key)}"
        f"/{encoded_entry(dest_bucket, dest_key)}/force/{_bool(force)}"
    )


def uri_move(src_bucket: str, src_key: str, dest_bucket: str, dest_key: str, force: bool = False) -> str:
    return (
        f"/move/{encoded_entry(src_bucket, src_key)}"
        f"/{encoded_entry(dest_bucket, dest_key)}/force/{_bool(force)}"
    )


def uri_change_status(bucket: str, key: str, enable: bool) -> str:
    # 0 enables, 1 disables
    status = "0" if enable else "1"
    return f"/chstatus/{encoded_entry(bucket, key)}/status/{status}"


def uri_change_mime(bucket: str, key: str, new_mime: str) -> str:
    return f"/chgm/{encoded_entry(bucket, key)}/mime/{urlsafe_b64(new_mime)}"


def uri_change_type(bucket: str, key: str, file_type: int) -> str:
    return f"/chtype/{encoded_entry(bucket, key)}/type/{int(file_type)}"


def uri_restore_ar(bucket: str, key: str, freeze_after_days: int) -> str:
    return f"/restoreAr/{encoded_entry(bucket, key)}/freezeAfterDays/{int(freeze_after_days)}"


def uri_delete_after_days(bucket: str, key: str, days: int) -> str:
    return f"/deleteAfterDays/{encoded_entry(bucket, key)}/{int(days)}"


def uri_change_lifecycle(
    bucket: str,
    key: str,
    to_ia_after_days: int = 0,
    to_archive_after_days: int = 0,
    to_deep_archive_after_days: int = 0,
    delete_after_days: int = 0,
) -> str:
    """Lifecycle command; a zero value leaves that rule unchanged, -1 clears it."""
    path = f"/lifecycle/{encoded_entry(bucket, key)}"
    for name, days in (
        ("toIAAfterDays", to_ia_after_days),
        ("toArchiveAfterDays", to_archive_after_days),
        ("toDeepArchiveAfterDays", to_deep_archive_after_days),
        ("deleteAfterDays", delete_after_days),
    ):
        if days:
            path += f"/{name}/{int(days)}"
    return path


BATCHABLE_BUILDERS = (
    uri_stat,
    uri_delete,
    uri_copy,
    uri_move,
    uri_change_status,
    uri_change_mime,
    uri_change_type,
    uri_restore_ar,
    uri_delete_after_days,
    uri_change_lifecycle,
)


# Single-call only

def uri_fetch(res_url: str, bucket: str, key: str) -> str:
    return f"/fetch/{urlsafe_b64(res_url)}/to/{encoded_entry(bucket, key)}"


def uri_fetch_without_key(res_url: str, bucket: str) -> str:
    return f"/fetch/{urlsafe_b64(res_url)}/to/{encoded_entry_without_key(bucket)}"


def uri_prefetch(bucket: str, key: str) -> str:
    return f"/prefetch/{encoded_entry(bucket, key)}"


def uri_set_image(site_url: str, bucket: str) -> str:
    return f"/image/{bucket}/from/{urlsafe_b64(site_url)}"


def uri_set_image_with_host(site_url: str, bucket: str, host: str) -> str:
    return f"/image/{bucket}/from/{urlsafe_b64(site_url)}/host/{urlsafe_b64(host)}"


def uri_unset_image(bucket: str) -> str:
    return f"/unimage/{bucket}"


def _list_query(bucket: str, prefix: str, delimiter: str, marker: str, limit: Optional[int]) -> str:
    params = {"bucket": bucket}
    if prefix:
        params["prefix"] = prefix
    if delimiter:
        params["delimiter"] = delimiter
    if marker:
        params["marker"] = marker
    if limit and limit > 0:
        params["limit"] = str(limit)
    # sorted by key so the signed path is stable
    return urlencode(sorted(params.items()))


def uri_list_files(bucket: str, prefix: str = "", delimiter: str = "", marker: str = "", limit: int = 0) -> str:
    return f"/list?{_list_query(bucket, prefix, delimiter, marker, limit)}"


def uri_list_files_v2(bucket: str, prefix: str = "", delimiter: str = "", marker: str = "") -> str:
    return f"/v2/list?{_list_query(bucket, prefix, delimiter, marker, None)}"
