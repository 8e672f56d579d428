import asyncio

import aiohttp
import pytest

from wordcrawler.crawler.robots import RobotsPolicy, RobotsRuleSet, parse_robots_txt


def make_fetcher(contents, calls, delay=0.0):
    async def fetch_text(url):
        calls.append(url)
        await asyncio.sleep(delay)
        return contents.get(url, "")
    return fetch_text


def test_allow_prefix_wins_over_disallow_prefix():
    rules = parse_robots_txt(
        "User-agent: *\n"
        "Disallow: /private\n"
        "Allow: /private/public\n",
        "WordCrawler"
    )

    assert rules.is_allowed("/private/public/page")
    assert not rules.is_allowed("/private/x")
    assert rules.is_allowed("/elsewhere")


def test_only_blocks_for_our_agent_or_wildcard_apply():
    rules = parse_robots_txt(
        "# site rules\n"
        "User-agent: OtherBot\n"
        "Disallow: /\n"
        "\n"
        "User-agent: wordcrawler\n"
        "Disallow: /secret  # keep out\n"
        "Disallow:\n",
        "WordCrawler"
    )

    assert rules == RobotsRuleSet(allow_prefixes=[], disallow_prefixes=["/secret"])
    assert rules.is_allowed("/")
    assert not rules.is_allowed("/secret/file")


def test_empty_path_is_treated_as_root():
    rules = parse_robots_txt("User-agent: *\nDisallow: /\n", "WordCrawler")

    assert not rules.is_allowed("")


@pytest.mark.asyncio
async def test_policy_applies_rules_per_origin():
    calls = []
    policy = RobotsPolicy("WordCrawler", make_fetcher(
        {"http://a.test/robots.txt": "User-agent: *\nDisallow: /private"}, calls
    ))

    assert not await policy.is_allowed("http://a.test/private/page")
    assert await policy.is_allowed("http://a.test/public")
    assert await policy.is_allowed("http://b.test/private/page")
    assert not await policy.is_allowed("http://a.test/private")

    assert calls == ["http://a.test/robots.txt", "http://b.test/robots.txt"]
    assert sorted(policy.cached_origins()) == ["http://a.test", "http://b.test"]


@pytest.mark.asyncio
async def test_concurrent_first_lookups_share_one_fetch():
    calls = []
    policy = RobotsPolicy("WordCrawler", make_fetcher({}, calls, delay=0.05))

    results = await asyncio.gather(
        *(policy.is_allowed(f"http://a.test/page{i}") for i in range(20))
    )

    assert all(results)
    assert calls == ["http://a.test/robots.txt"]


@pytest.mark.asyncio
async def test_fetch_failure_allows_the_whole_origin():
    calls = []

    async def failing_fetch(url):
        calls.append(url)
        raise aiohttp.ClientError("connection refused")

    policy = RobotsPolicy("WordCrawler", failing_fetch)

    assert await policy.is_allowed("http://down.test/anything")
    assert await policy.is_allowed("http://down.test/else")
    assert calls == ["http://down.test/robots.txt"]


@pytest.mark.asyncio
async def test_non_http_urls_are_always_allowed():
    calls = []
    policy = RobotsPolicy("WordCrawler", make_fetcher({}, calls))

    assert await policy.is_allowed("file:///tmp/site/index.html")
    assert calls == []


@pytest.mark.asyncio
async def test_close_cancels_unfinished_fetches():
    calls = []
    policy = RobotsPolicy("WordCrawler", make_fetcher({}, calls, delay=10))

    waiter = asyncio.create_task(policy.is_allowed("http://slow.test/"))
    await asyncio.sleep(0.01)
    waiter.cancel()
    await policy.close()

    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert all(task.done() for task in policy._rules.values())
