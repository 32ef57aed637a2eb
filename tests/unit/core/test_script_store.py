"""
ScriptStore 单元测试
"""

import threading
import pytest
from scriptdock.core.script_store import ScriptStore
from scriptdock.exceptions import DuplicateScript, FetchError, NotFound, NotRemoteScript

URL = "https://example.com/scripts/foo.user.js"


class TestAddLocal:
    """本地添加"""

    def test_first_record_order_zero(self, store):
        """空存储中第一个脚本 order 为 0 且启用"""
        record = store.add_local("A", "a();")

        assert record.order == 0
        assert record.enabled is True
        assert record.origin is None

    def test_order_is_max_plus_one(self, store):
        """新脚本 order = 当前最大值 + 1"""
        a = store.add_local("A", "")
        store.reorder(a.id, 10)

        assert store.add_local("B", "").order == 11

    def test_name_from_header_when_blank(self, store, userscript):
        """名称为空时使用头部 @name"""
        record = store.add_local("  ", userscript(name="Header Name"))

        assert record.name == "Header Name"

    def test_placeholder_name(self, store):
        """名称与头部都没有时使用占位名"""
        assert store.add_local("", "1;").name == "Unnamed Script"

    def test_persists_before_return(self, store, memory_backend):
        """返回前已写入持久化存储"""
        record = store.add_local("A", "a();")

        assert record.id in memory_backend.data
        assert memory_backend.data[record.id]["code"] == "a();"


class TestAddRemote:
    """URL 添加"""

    def test_creates_remote_record(self, store, fake_session, userscript):
        """新记录带来源信息"""
        fake_session.serve(URL, userscript(name="Foo", version="1.0"))

        record = store.add_remote(URL)

        assert record.name == "Foo"
        assert record.origin.url == URL
        assert record.origin.version == "1.0"
        assert record.origin.last_updated == 1_700_000_000
        assert record.origin.last_fetch_error is None

    def test_failure_creates_nothing(self, store, memory_backend):
        """获取失败时不创建记录也不写盘"""
        with pytest.raises(FetchError):
            store.add_remote(URL)

        assert store.list() == []
        assert memory_backend.saves == []

    def test_duplicate_url_rejected(self, store, fake_session, userscript):
        """同 URL 重复添加被拒绝且不再请求"""
        fake_session.serve(URL, userscript())
        store.add_remote(URL)
        calls = len(fake_session.calls)

        with pytest.raises(DuplicateScript):
            store.add_remote(URL)
        assert len(fake_session.calls) == calls


class TestMutations:
    """启用、删除、排序"""

    def test_toggle(self, store):
        record = store.add_local("A", "")
        store.toggle(record.id, False)

        assert store.get(record.id).enabled is False

    def test_delete(self, store):
        record = store.add_local("A", "")
        store.delete(record.id)

        with pytest.raises(NotFound):
            store.get(record.id)

    @pytest.mark.parametrize("operation", [
        lambda s: s.toggle("missing", True),
        lambda s: s.delete("missing"),
        lambda s: s.reorder("missing", 1),
        lambda s: s.refresh("missing"),
    ])
    def test_unknown_id(self, store, memory_backend, operation):
        """未知 id 抛出 NotFound 且不写盘"""
        with pytest.raises(NotFound):
            operation(store)
        assert memory_backend.saves == []

    def test_unknown_id_creates_no_lock(self, store):
        """未知 id 不会留下记录级锁"""
        for _ in range(5):
            with pytest.raises(NotFound):
                store.toggle("missing", True)

        assert "missing" not in store._id_locks

    def test_delete_releases_lock(self, store):
        """删除后记录级锁被移除"""
        record = store.add_local("A", "")
        store.toggle(record.id, False)
        assert record.id in store._id_locks

        store.delete(record.id)

        assert store._id_locks == {}

    def test_reorder_touches_only_target(self, store):
        """reorder 不调整其他记录"""
        a = store.add_local("A", "")
        b = store.add_local("B", "")
        store.reorder(b.id, 0)

        assert store.get(a.id).order == 0
        assert store.get(b.id).order == 0
        assert [r.id for r in store.list()] == sorted([a.id, b.id])

    def test_list_returns_snapshots(self, store):
        """修改快照不影响存储"""
        record = store.add_local("A", "")
        store.list()[0].name = "changed"

        assert store.get(record.id).name == "A"


class TestRefresh:
    """刷新"""

    def test_success_replaces_content(self, store, fake_session, userscript):
        """成功时替换内容并保留 id / enabled / order"""
        fake_session.serve(URL, userscript(name="Foo", version="1.0"))
        record = store.add_remote(URL)
        store.toggle(record.id, False)
        store.reorder(record.id, 7)
        fake_session.serve(URL, userscript(name="Foo 2", version="2.0", body="v2();"))

        result = store.refresh(record.id)

        assert result.succeeded
        assert result.changed
        assert result.record.id == record.id
        assert result.record.enabled is False
        assert result.record.order == 7
        assert result.record.name == "Foo 2"
        assert result.record.origin.version == "2.0"
        assert "v2();" in result.record.code

    def test_same_content_not_changed(self, store, fake_session, userscript):
        """内容相同时 changed 为 False"""
        fake_session.serve(URL, userscript())
        record = store.add_remote(URL)

        assert store.refresh(record.id).changed is False

    def test_failure_records_error_only(self, store, fake_session, userscript):
        """失败时只写入 last_fetch_error，其余字段不变"""
        fake_session.serve(URL, userscript(version="1.0"))
        record = store.add_remote(URL)
        fake_session.serve(URL, "down", status_code=500, reason="Internal Server Error")

        result = store.refresh(record.id)

        assert not result.succeeded
        current = store.get(record.id)
        assert current.origin.last_fetch_error == "HTTP 500: Internal Server Error"
        assert current.code == record.code
        assert current.origin.version == "1.0"
        assert current.origin.last_updated == record.origin.last_updated

    def test_success_clears_previous_error(self, store, fake_session, userscript):
        """成功后清除旧的错误"""
        fake_session.serve(URL, userscript())
        record = store.add_remote(URL)
        fake_session.serve(URL, "down", status_code=500, reason="Internal Server Error")
        store.refresh(record.id)
        fake_session.serve(URL, userscript())

        assert store.refresh(record.id).record.origin.last_fetch_error is None

    def test_local_script_cannot_refresh(self, store):
        """本地脚本刷新抛出 NotRemoteScript"""
        record = store.add_local("A", "")

        with pytest.raises(NotRemoteScript):
            store.refresh(record.id)


class TestPersistence:
    """加载与并发"""

    def test_reload_from_backend(self, memory_backend, fetcher):
        """新的存储实例读取已保存的记录"""
        first = ScriptStore(memory_backend, fetcher)
        record = first.add_local("A", "a();")

        second = ScriptStore(memory_backend, fetcher)

        assert second.get(record.id).code == "a();"

    def test_unparseable_record_skipped(self, memory_backend, fetcher):
        """无法解析的记录被跳过"""
        memory_backend.data = {"bad": {"name": "no id"}, "ok": {"id": "ok", "name": "OK", "code": ""}}

        assert [r.id for r in ScriptStore(memory_backend, fetcher).list()] == ["ok"]

    def test_concurrent_toggles_last_write_is_latest(self, store, memory_backend):
        """并发修改后最后一次落盘包含全部修改"""
        records = [store.add_local(f"S{i}", "") for i in range(20)]

        threads = [threading.Thread(target=store.toggle, args=(r.id, False)) for r in records]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(not data["enabled"] for data in memory_backend.data.values())
