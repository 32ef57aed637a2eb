"""
ScriptRecord / 诊断实体单元测试
"""

import pytest
from scriptdock.domain.entities import (
    ScriptRecord, ScriptOrigin, ScriptMetadata,
    ResolutionWarning, InjectionDegraded, InjectionTimedOut, ReloadFailed
)


class TestScriptRecord:
    """ScriptRecord 测试"""

    def test_local_record_has_no_origin(self):
        """本地脚本没有来源信息"""
        record = ScriptRecord(id="a", name="A", code="1;")

        assert record.is_remote is False
        assert record.requires == []
        assert "origin" not in record.to_dict()

    def test_sort_key_breaks_ties_by_id(self):
        """order 相同按 id 排序"""
        records = [ScriptRecord(id="b", name="B", code=""), ScriptRecord(id="a", name="A", code="")]

        assert [r.id for r in sorted(records, key=lambda r: r.sort_key)] == ["a", "b"]

    def test_copy_is_deep(self):
        """快照与原记录互不影响"""
        record = ScriptRecord(id="a", name="A", code="", origin=ScriptOrigin(url="https://x/a.js", requires=["B"]))
        snapshot = record.copy()
        snapshot.origin.requires.append("C")

        assert record.requires == ["B"]

    def test_round_trip_remote(self):
        """远程记录序列化后还原"""
        origin = ScriptOrigin(url="https://x/a.js", version="1.2", requires=["Lib"], last_updated=100)
        record = ScriptRecord(id="a", name="A", code="1;", enabled=False, order=3, origin=origin)

        restored = ScriptRecord.from_dict(record.to_dict())

        assert restored == record

    def test_origin_omits_unset_fields(self):
        """未设置的可选字段不写入"""
        data = ScriptOrigin(url="https://x/a.js").to_dict()

        assert data == {"url": "https://x/a.js", "requires": []}


class TestLegacyFormat:
    """旧版平铺格式兼容"""

    def test_flat_remote_fields(self):
        """顶层 url / version 转为 origin"""
        data = {
            "id": "old", "name": "Old", "code": "x", "enabled": True, "order": 1,
            "url": "https://x/old.user.js", "version": "0.9", "last_updated": 5,
        }
        record = ScriptRecord.from_dict(data)

        assert record.is_remote
        assert record.origin.url == "https://x/old.user.js"
        assert record.origin.version == "0.9"
        assert record.origin.last_updated == 5

    def test_missing_name_uses_placeholder(self):
        """缺少名称时使用占位名"""
        assert ScriptRecord.from_dict({"id": "x", "code": ""}).name == "Unnamed Script"

    def test_missing_id_raises(self):
        """缺少 id 无法构建"""
        with pytest.raises(KeyError):
            ScriptRecord.from_dict({"name": "x"})


class TestScriptMetadata:
    """ScriptMetadata 测试"""

    def test_library_urls_only_http(self):
        """只有 http(s) 依赖是库文件"""
        meta = ScriptMetadata(requires=["Core", "https://a/lib.js", "http://b/lib.js"])

        assert meta.library_urls == ["https://a/lib.js", "http://b/lib.js"]

    def test_is_empty(self):
        assert ScriptMetadata().is_empty
        assert not ScriptMetadata(version="1").is_empty


class TestDiagnostics:
    """诊断实体测试"""

    def test_resolution_warning(self):
        """依赖环警告"""
        warning = ResolutionWarning(script_ids=["a", "b"], script_names=["A", "B"])
        data = warning.to_dict()

        assert data["kind"] == "ResolutionWarning"
        assert data["script_ids"] == ["a", "b"]
        assert "A, B" in data["message"]

    def test_injection_degraded(self):
        """注入截断"""
        diag = InjectionDegraded(failed_id="a", failed_name="A", error="boom", skipped_ids=["b", "c"])

        assert diag.kind == "InjectionDegraded"
        assert "2 later script(s)" in diag.describe()
        assert diag.to_dict()["skipped_ids"] == ["b", "c"]

    def test_timed_out(self):
        """握手超时"""
        diag = InjectionTimedOut(phase="awaiting anchor", timeout=3.0)

        assert diag.kind == "InjectionTimedOut"
        assert "awaiting anchor" in diag.describe()

    def test_reload_failed(self):
        """后台重新加载失败"""
        diag = ReloadFailed(trigger="auto-update", error="browser closed")

        assert diag.kind == "ReloadFailed"
        assert diag.describe() == "Reload after auto-update failed: browser closed"

    def test_timestamp_is_keyword_only(self):
        """时间戳只能以关键字传入"""
        diag = InjectionTimedOut(phase="injecting", timeout=1.0, timestamp=42.0)

        assert diag.to_dict()["timestamp"] == 42.0
