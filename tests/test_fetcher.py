import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from wordcrawler.crawler.fetcher import HttpPageSource, PageFetchError


def make_app():
    async def page(request):
        return web.Response(
            text='<html><body>Hello hello world <a href="/next">next</a></body></html>',
            content_type='text/html'
        )

    async def image(request):
        return web.Response(body=b'\x89PNG', content_type='image/png')

    async def missing(request):
        return web.Response(status=404, text='gone')

    async def robots(request):
        return web.Response(text='User-agent: *\nDisallow: /private\n')

    async def slow(request):
        await asyncio.sleep(1)
        return web.Response(text='late', content_type='text/html')

    app = web.Application()
    app.router.add_get('/page', page)
    app.router.add_get('/image', image)
    app.router.add_get('/missing', missing)
    app.router.add_get('/robots.txt', robots)
    app.router.add_get('/slow', slow)
    return app


@pytest.mark.asyncio
async def test_fetch_and_parse_over_http():
    async with TestServer(make_app()) as server:
        async with HttpPageSource(user_agent='WordCrawler') as source:
            page = await source.fetch_and_parse(str(server.make_url('/page')))

            assert page.words == ['hello', 'hello', 'world', 'next']
            assert page.links == [str(server.make_url('/next'))]
            assert source.get_stats()['successful_requests'] == 1


@pytest.mark.asyncio
async def test_http_errors_and_binary_content_raise():
    async with TestServer(make_app()) as server:
        async with HttpPageSource(user_agent='WordCrawler') as source:
            with pytest.raises(PageFetchError):
                await source.fetch_and_parse(str(server.make_url('/missing')))
            with pytest.raises(PageFetchError):
                await source.fetch_and_parse(str(server.make_url('/image')))

            assert source.get_stats()['failed_requests'] == 2


@pytest.mark.asyncio
async def test_request_timeout_raises_fetch_error():
    async with TestServer(make_app()) as server:
        async with HttpPageSource(user_agent='WordCrawler', request_timeout=0.2) as source:
            with pytest.raises(PageFetchError):
                await source.fetch_and_parse(str(server.make_url('/slow')))


@pytest.mark.asyncio
async def test_oversized_body_raises():
    async with TestServer(make_app()) as server:
        async with HttpPageSource(user_agent='WordCrawler', max_content_size=10) as source:
            with pytest.raises(PageFetchError):
                await source.fetch_and_parse(str(server.make_url('/page')))


@pytest.mark.asyncio
async def test_fetch_text_returns_empty_for_missing_resources():
    async with TestServer(make_app()) as server:
        async with HttpPageSource(user_agent='WordCrawler') as source:
            robots = await source.fetch_text(str(server.make_url('/robots.txt')))
            missing = await source.fetch_text(str(server.make_url('/missing')))

    assert 'Disallow: /private' in robots
    assert missing == ''


@pytest.mark.asyncio
async def test_file_urls_are_read_from_disk(tmp_path):
    (tmp_path / 'index.html').write_text(
        '<p>Local words</p><a href="/other.html">other</a>', encoding='utf-8'
    )

    async with HttpPageSource(user_agent='WordCrawler') as source:
        page = await source.fetch_and_parse((tmp_path / 'index.html').as_uri())

        with pytest.raises(PageFetchError):
            await source.fetch_and_parse((tmp_path / 'absent.html').as_uri())

    assert page.words == ['local', 'words', 'other']
    assert page.links == [(tmp_path / 'other.html').as_uri()]


@pytest.mark.asyncio
async def test_http_fetch_requires_started_session():
    source = HttpPageSource(user_agent='WordCrawler')

    with pytest.raises(RuntimeError):
        await source.fetch_text('http://site.test/robots.txt')
