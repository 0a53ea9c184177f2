"""Tests for resolving parsed links against known titles."""
import pytest

from notelinks.exceptions import ErrorCode, StoreError
from notelinks.services.link_parser import parse_links
from notelinks.services.link_resolver import dangling_targets, resolve_links
from notelinks.services.link_service import LinkService


class TestResolveLinks:
    """Tests for the pure resolution step."""

    def test_marks_only_known_titles(self):
        links = parse_links("[[Alpha]] [[Beta|b]] [[Gamma]]")

        resolve_links(links, {"Alpha", "Gamma"})

        assert [l.exists for l in links] == [True, False, True]

    def test_match_is_exact(self):
        """No case folding and no whitespace normalization."""
        links = parse_links("[[alpha]] [[Alpha]]")

        resolve_links(links, ["Alpha "])
        assert [l.exists for l in links] == [False, False]

        resolve_links(links, ["Alpha"])
        assert [l.exists for l in links] == [False, True]

    def test_returns_same_list(self):
        links = parse_links("[[A]]")

        assert resolve_links(links, set()) is links

    def test_dangling_targets_are_unique_and_ordered(self):
        links = parse_links("[[Z]] [[Known]] [[Y]] [[Z|again]]")
        resolve_links(links, {"Known"})

        assert dangling_targets(links) == ["Z", "Y"]


class TestServiceResolveLinks:
    """Tests for LinkService.resolve_links against the live store."""

    @pytest.mark.anyio
    async def test_resolves_against_store_titles(self, link_service, counting_store):
        links = parse_links("[[Project Plan]] and [[Nowhere]]")

        result = await link_service.resolve_links(links)

        assert [l.exists for l in result] == [True, False]
        assert counting_store.calls["get_all_notes"] == 1

    @pytest.mark.anyio
    async def test_no_occurrences_skips_fetch(self, link_service, counting_store):
        assert await link_service.resolve_links([]) == []
        assert counting_store.calls["get_all_notes"] == 0

    @pytest.mark.anyio
    async def test_store_failure_is_wrapped(self, flaky_store):
        flaky_store.fail_reads = True
        service = LinkService(flaky_store)

        with pytest.raises(StoreError) as exc_info:
            await service.resolve_links(parse_links("[[Project Plan]]"))

        assert exc_info.value.operation == "resolve_links"
        assert exc_info.value.code == ErrorCode.STORE_CONNECTION_FAILED
        assert "connection refused" in exc_info.value.message
