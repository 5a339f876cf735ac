from infrastructure.external.storage.models import (
    AsyncFetchParam,
    BatchOpRet,
    FileInfo,
    ListFilesResult,
    ListItem,
    ListRecord,
)


def test_list_item_is_empty_ignores_other_fields():
    assert ListItem().is_empty()
    assert ListItem(mimeType="image/png", type=1, endUser="u").is_empty()
    assert not ListItem(key="a").is_empty()
    assert not ListItem(fsize=1).is_empty()


def test_list_record_variants():
    entry = ListRecord.model_validate({"marker": "m1", "item": {"key": "a", "fsize": 3}})
    directory = ListRecord.model_validate({"marker": "m2", "item": None, "dir": "photos/"})
    marker_only = ListRecord.model_validate({"marker": "m3"})
    assert entry.item.key == "a" and not entry.is_dir
    assert directory.is_dir and directory.item.is_empty()
    assert marker_only.item.is_empty() and marker_only.marker == "m3"


def test_list_files_result_has_next():
    assert ListFilesResult.model_validate({"marker": "abc"}).has_next
    assert not ListFilesResult.model_validate({"marker": ""}).has_next


def test_file_info_aliases():
    info = FileInfo.model_validate({"putTime": 1, "restoreStatus": 2, "transitionToARCHIVE": 3, "parts": [1, 2]})
    assert info.put_time == 1
    assert info.restore_status == 2
    assert info.transition_to_archive == 3
    assert info.parts == [1, 2]


def test_batch_op_ret_error():
    assert BatchOpRet.model_validate({"code": 200, "data": None}).error is None
    assert BatchOpRet.model_validate({"code": 631}).error == "operation failed with code 631"


def test_async_fetch_payload_drops_unset_fields():
    payload = AsyncFetchParam(url="u", bucket="b", file_type=1).to_payload()
    assert payload == {"url": "u", "bucket": "b", "file_type": 1}
