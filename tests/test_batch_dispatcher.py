import unittest

from core.batch_dispatcher import append_blocks_in_batches
from core.exceptions import ApiResponseError
from core.exceptions import PartialAppendError
from data.models import RequestContext
from utils.block_builder import build_paragraph_block


class FakeBlockApi:
    """Fake block api recording create-children calls."""

    def __init__(self, fail_on_call: int = 0):
        self.calls = []
        self.fail_on_call = fail_on_call

    def create_children(self, **kwargs):
        """Record call and optionally fail.

        Args:
            self: Fake api instance.
            kwargs: Call fields.
        """

        self.calls.append(kwargs)
        if self.fail_on_call and len(self.calls) == self.fail_on_call:
            raise ApiResponseError("Feishu API failed: code = 1770001, msg = invalid param", code = 1770001)
        return {}


def _blocks(count: int) -> list:
    return [build_paragraph_block(content = f"line {index}") for index in range(count)]


class TestBatchDispatcher(unittest.TestCase):
    """Tests for sequential chunked block inserts."""

    def test_120_blocks_in_three_batches(self) -> None:
        """120 blocks with batch size 50 should insert 50, 50, 20 at 0, 50, 100.

        Args:
            self: Test case instance.
        """

        api = FakeBlockApi()
        blocks = _blocks(120)

        result = append_blocks_in_batches(
            block_api = api,
            document_id = "doc_1",
            parent_block_id = "page_1",
            blocks = blocks,
            start_index = 0,
            max_batch_size = 50
        )

        self.assertEqual([len(call["children"]) for call in api.calls], [50, 50, 20])
        self.assertEqual([call["index"] for call in api.calls], [0, 50, 100])
        self.assertEqual(api.calls[2]["children"], blocks[100:])
        self.assertEqual(result.inserted, 120)
        self.assertEqual(result.batches, 3)
        self.assertEqual(result.next_index, 120)
        self.assertEqual(result.batch_sizes, [50, 50, 20])

    def test_start_index_offsets_every_batch(self) -> None:
        """Batch index equals start plus blocks already inserted.

        Args:
            self: Test case instance.
        """

        api = FakeBlockApi()
        context = RequestContext(user_access_token = "u_1")
        append_blocks_in_batches(
            block_api = api,
            document_id = "doc_1",
            parent_block_id = "page_1",
            blocks = _blocks(7),
            start_index = 4,
            max_batch_size = 3,
            context = context
        )

        self.assertEqual([call["index"] for call in api.calls], [4, 7, 10])
        self.assertTrue(all(call["context"] is context for call in api.calls))
        self.assertTrue(all(call["block_id"] == "page_1" for call in api.calls))

    def test_single_batch_when_under_limit(self) -> None:
        """N <= M should issue exactly one call.

        Args:
            self: Test case instance.
        """

        api = FakeBlockApi()
        append_blocks_in_batches(
            block_api = api,
            document_id = "doc_1",
            parent_block_id = "page_1",
            blocks = _blocks(50),
            start_index = 2
        )

        self.assertEqual(len(api.calls), 1)
        self.assertEqual(api.calls[0]["index"], 2)

    def test_no_blocks_no_calls(self) -> None:
        """Empty block list should not call the API.

        Args:
            self: Test case instance.
        """

        api = FakeBlockApi()
        result = append_blocks_in_batches(
            block_api = api,
            document_id = "doc_1",
            parent_block_id = "page_1",
            blocks = [],
            start_index = 5
        )

        self.assertEqual(api.calls, [])
        self.assertEqual(result.next_index, 5)

    def test_failure_aborts_and_reports_progress(self) -> None:
        """A failed batch stops the run without retry and reports committed blocks.

        Args:
            self: Test case instance.
        """

        api = FakeBlockApi(fail_on_call = 2)

        with self.assertRaises(PartialAppendError) as ctx:
            append_blocks_in_batches(
                block_api = api,
                document_id = "doc_1",
                parent_block_id = "page_1",
                blocks = _blocks(120),
                start_index = 0,
                max_batch_size = 50
            )

        self.assertEqual(len(api.calls), 2)
        self.assertEqual(ctx.exception.inserted, 50)
        self.assertEqual(ctx.exception.batches_done, 1)
        self.assertEqual(ctx.exception.code, 1770001)
        self.assertIsInstance(ctx.exception.__cause__, ApiResponseError)

    def test_rejects_non_positive_batch_size(self) -> None:
        """Batch size must be positive.

        Args:
            self: Test case instance.
        """

        with self.assertRaises(ValueError):
            append_blocks_in_batches(
                block_api = FakeBlockApi(),
                document_id = "doc_1",
                parent_block_id = "page_1",
                blocks = _blocks(1),
                start_index = 0,
                max_batch_size = 0
            )


if __name__ == "__main__":
    unittest.main()
