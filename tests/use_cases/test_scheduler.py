"""
scheduler.pyのテスト

並行数の上限、スライディングウィンドウ、失敗の分離、モデル単位の逐次実行を確認する。
"""

import asyncio

import pytest

from llm_doc_bench.domain.entities import DocumentUnit, PromptRole, PromptUnit, TestCase
from llm_doc_bench.use_cases.scheduler import BoundedScheduler, partition_by_model

PROMPT = PromptUnit(id="user_x", role=PromptRole.USER, base_name="x", content="Analyze: {{content}}")


def _cases(model="m1", count=10):
    return [
        TestCase(model=model, prompt_unit=PROMPT, document_unit=DocumentUnit(id=f"doc{i}", content="d"))
        for i in range(count)
    ]


def _document_index(test_case):
    return int(test_case.document_unit.id.removeprefix("doc"))


class _Recorder:
    """process_case の代わり。遅延と同時実行数を記録する"""

    def __init__(self, delays=None, fail_on=(), none_on=()):
        self.delays = delays or {}
        self.fail_on = set(fail_on)
        self.none_on = set(none_on)
        self.active = 0
        self.peak = 0
        self.started = []
        self.finished = []
        self.models_seen = []

    async def __call__(self, test_case, test_id):
        index = _document_index(test_case)
        self.started.append((test_case.model, index))
        self.models_seen.append(test_case.model)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delays.get(index, 0.01))
            if index in self.fail_on:
                raise RuntimeError(f"boom {index}")
            if index in self.none_on:
                return None
            return test_case.key
        finally:
            self.active -= 1
            self.finished.append((test_case.model, index))


class TestBoundedScheduler:
    """BoundedScheduler のテスト"""

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedScheduler(_Recorder(), limit=0)

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self):
        """10件・上限3で、同時実行数は常に3以下"""
        delays = {i: 0.01 * ((i * 7) % 5 + 1) for i in range(10)}
        recorder = _Recorder(delays=delays)
        scheduler = BoundedScheduler(recorder, limit=3)

        outcome = await scheduler.run(_cases())

        assert recorder.peak == 3
        assert scheduler.peak_in_flight == 3
        assert outcome.partitions[0].peak_in_flight == 3
        assert len(outcome.results) == 10
        assert scheduler.in_flight == 0

    @pytest.mark.asyncio
    async def test_every_case_runs_exactly_once(self):
        recorder = _Recorder()
        outcome = await BoundedScheduler(recorder, limit=3).run(_cases())

        assert sorted(index for _, index in recorder.started) == list(range(10))
        assert sorted(outcome.results) == sorted(tc.key for tc in _cases())

    @pytest.mark.asyncio
    async def test_sliding_window(self):
        """1件が長時間かかっても、残りの枠で後続ケースが進む"""
        recorder = _Recorder(delays={0: 0.3})
        await BoundedScheduler(recorder, limit=3).run(_cases(count=6))

        # doc0 がまだ実行中の間に doc1..doc5 が全て完了している
        assert recorder.finished[-1] == ("m1", 0)
        assert [index for _, index in recorder.started[:3]] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self):
        recorder = _Recorder(fail_on={4})
        outcome = await BoundedScheduler(recorder, limit=3).run(_cases())

        assert len(outcome.results) == 9
        assert len(outcome.failures) == 1
        failure = outcome.failures[0]
        assert failure.test_case.document_unit.id == "doc4"
        assert failure.error_type == "RuntimeError"
        assert failure.message == "boom 4"
        assert outcome.partitions[0].failed == 1
        assert outcome.total == 10

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog):
        await BoundedScheduler(_Recorder(fail_on={2}), limit=3).run(_cases(count=3))

        assert "FAILED" in caplog.text
        assert "file=doc2" in caplog.text

    @pytest.mark.asyncio
    async def test_none_result_counts_as_failure(self):
        outcome = await BoundedScheduler(_Recorder(none_on={1}), limit=3).run(_cases(count=3))

        assert len(outcome.results) == 2
        assert outcome.failures[0].error_type == "NoResult"

    @pytest.mark.asyncio
    async def test_models_run_sequentially(self):
        """モデルBのケースはモデルAの全ケース完了後に開始する"""
        recorder = _Recorder()
        cases = _cases("model-a", 5) + _cases("model-b", 5)

        outcome = await BoundedScheduler(recorder, limit=3).run(cases)

        last_a_finished = max(i for i, (model, _) in enumerate(recorder.finished) if model == "model-a")
        first_b_finished = min(i for i, (model, _) in enumerate(recorder.finished) if model == "model-b")
        assert last_a_finished < first_b_finished
        assert recorder.models_seen[:5] == ["model-a"] * 5
        assert [p.model for p in outcome.partitions] == ["model-a", "model-b"]

    @pytest.mark.asyncio
    async def test_fewer_cases_than_limit(self):
        recorder = _Recorder()
        outcome = await BoundedScheduler(recorder, limit=3).run(_cases(count=2))

        assert recorder.peak <= 2
        assert len(outcome.results) == 2

    @pytest.mark.asyncio
    async def test_limit_one_is_serial(self):
        recorder = _Recorder()
        await BoundedScheduler(recorder, limit=1).run(_cases(count=4))

        assert recorder.peak == 1
        assert [index for _, index in recorder.finished] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        outcome = await BoundedScheduler(_Recorder()).run([])

        assert outcome.results == []
        assert outcome.partitions == []

    @pytest.mark.asyncio
    async def test_test_id_reports_position(self):
        seen = []

        async def process(test_case, test_id):
            seen.append(test_id)
            return test_case.key

        await BoundedScheduler(process, limit=3).run(_cases(count=3))

        assert sorted(seen) == ["1/3", "2/3", "3/3"]


class TestPartitionByModel:

    def test_preserves_model_and_case_order(self):
        cases = _cases("b", 2) + _cases("a", 2) + _cases("b", 1)

        partitions = partition_by_model(cases)

        assert list(partitions) == ["b", "a"]
        assert [tc.document_unit.id for tc in partitions["b"]] == ["doc0", "doc1", "doc0"]
