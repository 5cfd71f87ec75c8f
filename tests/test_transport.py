"""
Tests for RTQueue Mock Transport

Tests the interception engine through a real requests.Session including:
- Multi-queue scenario with exhaustion, headers, query and body matching
- FIFO order across interleaved non-matching requests
- Unknown origins and audit policy
- Completion checks, unmatched requests and the audit trace
- Logging and configuration
"""

import logging
import pytest
import requests

from rtqueue.mock.errors import (
    BodyReadError,
    MatchEvaluationError,
    MockNotRegistered,
    MockTransportError,
    OriginNotRegistered
)
from rtqueue.mock.generator import build_response
from rtqueue.mock.queue import new_queue
from rtqueue.mock.transport import MockConfig, MockTransport, new_transport


@pytest.fixture
def transport():
    """Transport with the queues of the reference scenario."""
    transport = new_transport(
        'http://example.com',
        new_queue()
        .then_respond(200, '{"count": 1}')
        .then_respond(200, '{"count": 2}'),
        new_queue().post('/2/sample')
        .then_respond(200, '{"count": 4}'),
        new_queue().with_header('Authorization', 'Bearer test').get('/2/sample')
        .then_respond(200, '{"count": 3}'),
        new_queue().with_query('test', 'hoge')
        .then_respond(200, '{"count": 5}'),
        new_queue().with_body('{"test":"hoge"}')
        .then_respond(200, '{"count": 6}'),
    )
    transport.register_origin(
        'http://example2.com',
        new_queue().then_respond(200, '{"count": 1}'),
    )
    return transport


@pytest.fixture
def session(transport):
    """Session routed through the transport."""
    return transport.session()


# (method, url, headers, body, expected status, expected body); status None means MockNotRegistered
SCENARIO = [
    ('GET', 'http://example.com/1/sample', None, None, 200, '{"count": 1}'),
    ('GET', 'http://example.com/1/sample', None, None, 200, '{"count": 2}'),
    ('GET', 'http://example.com/1/sample', None, None, None, None),
    ('GET', 'http://example.com/1/sample', {'Authorization': 'Bearer test'}, None, None, None),
    ('GET', 'http://example.com/2/sample', {'Authorization': 'Bearer invalid'}, None, None, None),
    ('GET', 'http://example.com/2/sample', {'Authorization': 'Bearer test'}, None, 200, '{"count": 3}'),
    ('POST', 'http://example.com/2/sample', None, None, 200, '{"count": 4}'),
    ('GET', 'http://example.com/3/sample?test=fuga', None, None, None, None),
    ('GET', 'http://example.com/3/sample?test=hoge', None, None, 200, '{"count": 5}'),
    ('GET', 'http://example.com/4/sample', None, '{"test":"fuga"}', None, None),
    ('GET', 'http://example.com/4/sample', None, '{"test":"hoge"}', 200, '{"count": 6}'),
    ('GET', 'http://example.com/1/sample', None, None, None, None),
    ('GET', 'http://example2.com/1/sample', None, None, 200, '{"count": 1}'),
]

EXPECTED_TRACE = """1: GET http://example.com/1/sample
2: GET http://example.com/1/sample
3: GET http://example.com/1/sample (not matched)
4: GET http://example.com/1/sample (not matched)
5: GET http://example.com/2/sample (not matched)
6: GET http://example.com/2/sample
7: POST http://example.com/2/sample
8: GET http://example.com/3/sample?test=fuga (not matched)
9: GET http://example.com/3/sample?test=hoge
10: GET http://example.com/4/sample (not matched)
11: GET http://example.com/4/sample
12: GET http://example.com/1/sample (not matched)
13: GET http://example2.com/1/sample"""


class TestScenario:
    """Run the full multi-queue scenario through requests."""

    def test_full_scenario(self, transport, session):
        """Test every step, then the trace, unmatched count and completion."""
        for method, url, headers, body, status, expected in SCENARIO:
            if status is None:
                with pytest.raises(MockNotRegistered) as exc_info:
                    session.request(method, url, headers=headers, data=body)
                assert str(exc_info.value) == f"mock is not registered: {method} {url}"
                continue

            response = session.request(method, url, headers=headers, data=body)
            assert response.status_code == status, f"{method} {url}"
            assert response.text == expected, f"{method} {url}"

        assert transport.audit_log_string() == EXPECTED_TRACE
        assert len(transport.unmatched_requests()) == 6
        assert not transport.completed()

        transport.reset_audit_log()
        assert transport.completed()

    def test_mock_error_is_request_exception(self, session):
        """Test clients catching requests errors also catch mock failures."""
        session.get('http://example.com/')
        session.get('http://example.com/')

        with pytest.raises(requests.RequestException):
            session.get('http://example.com/')


class TestCountScenario:
    """Queue with no criteria and two responses."""

    def test_two_then_fail(self):
        """Test count 1, count 2, then MockNotRegistered."""
        transport = new_transport(
            'http://h',
            new_queue().then_respond_json(200, {'count': 1}).then_respond_json(200, {'count': 2}),
        )
        session = transport.session()

        assert session.get('http://h/').json() == {'count': 1}
        assert session.get('http://h/').json() == {'count': 2}
        with pytest.raises(MockNotRegistered):
            session.get('http://h/')


class TestBodyScenario:
    """Queue gated on body content."""

    def test_fuga_then_hoge(self):
        """Test non-matching body is audited unmatched, then matching body succeeds."""
        transport = new_transport(
            'http://example.com',
            new_queue().with_body('{"test":"hoge"}').then_respond(200, 'ok'),
        )
        session = transport.session()

        with pytest.raises(MockNotRegistered):
            session.post('http://example.com/', data='{"test":"fuga"}')
        assert session.post('http://example.com/', data='{"test":"hoge"}').text == 'ok'

        records = transport.audit_records()
        assert [r.matched for r in records] == [False, True]
        assert transport.unmatched_requests()[0].body == '{"test":"fuga"}'

    def test_producer_sees_restored_stream_body(self, make_request):
        """Test the producer reads the same body the matcher read."""
        seen = []

        def echo(request):
            seen.append(request.body)
            return requests.Response()

        transport = new_transport(
            'http://example.com',
            new_queue().with_body('streamed').then_respond_with(echo),
        )
        request = make_request('POST', 'http://example.com/', data=(c for c in [b'stream', b'ed']))

        transport.send(request)

        assert seen == [b'streamed']


class TestThreeLineTrace:
    """Audit trace rendering through the transport."""

    def test_match_nomatch_match(self):
        """Test three lines with the unmatched marker in the middle."""
        transport = new_transport(
            'http://h',
            new_queue().with_path('/a').then_respond(200).then_respond(200),
        )
        session = transport.session()

        session.get('http://h/a')
        with pytest.raises(MockNotRegistered):
            session.get('http://h/b')
        session.post('http://h/a')

        assert transport.audit_log_string() == (
            "1: GET http://h/a\n"
            "2: GET http://h/b (not matched)\n"
            "3: POST http://h/a"
        )


class TestQueueProperties:
    """Properties of queue selection and consumption."""

    def test_non_matching_queue_untouched(self, make_request):
        """Test a queue that rejects a request keeps its length."""
        transport = new_transport(
            'http://example.com',
            new_queue().post('/a').then_respond(200),
            new_queue().get('/b').then_respond(200),
        )
        post_a, get_b = transport.registry.queues_for('http://example.com')

        transport.send(make_request('GET', 'http://example.com/b'))
        with pytest.raises(MockNotRegistered):
            transport.send(make_request('GET', 'http://example.com/c'))

        assert len(post_a) == 1
        assert len(get_b) == 0

    def test_fifo_with_interleaved_misses(self, make_request):
        """Test responses come out in order despite unrelated requests."""
        transport = new_transport(
            'http://example.com',
            new_queue().get('/x').then_respond(200, 'P1').then_respond(200, 'P2').then_respond(200, 'P3'),
            new_queue().get('/other').then_respond(200, 'other'),
        )
        session = transport.session()
        bodies = []

        for _ in range(3):
            bodies.append(session.get('http://example.com/x').text)
            with pytest.raises(MockNotRegistered):
                session.get('http://example.com/y')

        assert bodies == ['P1', 'P2', 'P3']

    def test_exhausted_queue_does_not_block(self):
        """Test a later identical queue serves once the first is empty."""
        transport = new_transport(
            'http://example.com',
            new_queue().get('/a').then_respond(200, 'first'),
            new_queue().get('/a').then_respond(200, 'second'),
        )
        session = transport.session()

        assert session.get('http://example.com/a').text == 'first'
        assert session.get('http://example.com/a').text == 'second'
        with pytest.raises(MockNotRegistered):
            session.get('http://example.com/a')

    def test_retry_sequence(self):
        """Test one pattern can answer 429 then 200."""
        transport = new_transport(
            'https://api.example.com',
            new_queue().get('/items')
            .then_respond(429, 'slow down', {'Retry-After': '1'})
            .then_respond_json(200, {'items': []}),
        )
        session = transport.session()

        first = session.get('https://api.example.com/items')
        second = session.get('https://api.example.com/items')

        assert first.status_code == 429
        assert first.headers['Retry-After'] == '1'
        assert second.json() == {'items': []}
        assert transport.completed()


class TestOriginNotRegistered:
    """Requests to unknown origins."""

    def test_raises_without_audit(self, transport, make_request):
        """Test default policy: error, no audit record."""
        with pytest.raises(OriginNotRegistered) as exc_info:
            transport.send(make_request('GET', 'http://unknown.example/a'))

        assert exc_info.value.origin == 'http://unknown.example'
        assert transport.audit_records() == []

    def test_audit_when_configured(self, make_request):
        """Test audit_unregistered_origin records an unmatched entry."""
        transport = new_transport(
            'http://example.com',
            new_queue(),
            config=MockConfig(audit_unregistered_origin=True),
        )

        with pytest.raises(OriginNotRegistered):
            transport.send(make_request('GET', 'http://unknown.example/a'))

        assert transport.audit_log_string() == '1: GET http://unknown.example/a (not matched)'
        assert not transport.completed()

    def test_empty_transport(self, make_request):
        """Test a transport with no origins rejects everything."""
        with pytest.raises(OriginNotRegistered):
            MockTransport().send(make_request('GET', 'http://example.com/'))


class TestMatchErrors:
    """Errors raised while matching."""

    def test_predicate_error_propagates(self, make_request):
        """Test predicate errors surface and are audited as unmatched."""
        def explode(request):
            raise RuntimeError("boom")

        transport = new_transport(
            'http://example.com',
            new_queue().with_predicate(explode).then_respond(200),
        )

        with pytest.raises(MatchEvaluationError):
            transport.send(make_request())

        assert len(transport.unmatched_requests()) == 1
        assert transport.registry.remaining() == 1

    def test_body_read_error_propagates(self, make_request):
        """Test body read failures surface as transport errors."""
        class BrokenStream:
            def read(self):
                raise OSError("reset")

        transport = new_transport(
            'http://example.com',
            new_queue().with_body('x').then_respond(200),
        )
        request = make_request('POST')
        request.body = BrokenStream()

        with pytest.raises(BodyReadError):
            transport.send(request)
        assert isinstance(BodyReadError("x"), MockTransportError)

    def test_producer_error_propagates(self):
        """Test a raising producer surfaces its error and still consumes the entry."""
        transport = new_transport(
            'http://example.com',
            new_queue().then_raise(requests.ConnectionError("refused")).then_respond(200, 'ok'),
        )
        session = transport.session()

        with pytest.raises(requests.ConnectionError, match="refused"):
            session.get('http://example.com/')
        assert session.get('http://example.com/').text == 'ok'
        assert transport.completed()


class TestSetupAndInspection:
    """Construction helpers and inspection API."""

    def test_new_transport_without_origin(self):
        """Test an empty transport can be filled later."""
        transport = new_transport()
        transport.register_origin('http://example.com', new_queue().then_respond(204))

        assert transport.session().get('http://example.com/').status_code == 204

    def test_new_transport_queues_without_origin(self):
        """Test queues require an origin."""
        with pytest.raises(ValueError):
            new_transport(None, new_queue())

    def test_template_reuse_across_origins(self):
        """Test one template registered twice yields independent queues."""
        template = new_queue().then_respond(200, 'ok')
        transport = new_transport('http://a.example', template)
        transport.register_origin('http://b.example', template)
        session = transport.session()

        assert session.get('http://a.example/').text == 'ok'
        assert session.get('http://b.example/').text == 'ok'
        assert transport.completed()

    def test_completed_false_with_remaining(self):
        """Test completed() is false while responses remain."""
        transport = new_transport('http://example.com', new_queue().then_respond(200))

        assert not transport.completed()
        transport.session().get('http://example.com/')
        assert transport.completed()

    def test_completed_no_origins(self):
        """Test a fresh transport without expectations is complete."""
        assert MockTransport().completed()

    def test_assert_completed(self):
        """Test assert_completed() reports remaining and unmatched."""
        transport = new_transport('http://example.com', new_queue().get('/a').then_respond(200))
        with pytest.raises(MockNotRegistered):
            transport.session().get('http://example.com/b')

        with pytest.raises(AssertionError) as exc_info:
            transport.assert_completed()

        message = str(exc_info.value)
        assert '1 responses not consumed' in message
        assert '1 unmatched requests' in message
        assert '1: GET http://example.com/b (not matched)' in message

    def test_stats(self):
        """Test stats combine audit counts and remaining responses."""
        transport = new_transport('http://example.com', new_queue().get('/a').then_respond(200).then_respond(200))
        session = transport.session()
        session.get('http://example.com/a')
        with pytest.raises(MockNotRegistered):
            session.get('http://example.com/b')

        stats = transport.stats()

        assert stats['total_requests'] == 2
        assert stats['matched_requests'] == 1
        assert stats['unmatched_requests'] == 1
        assert stats['remaining_responses'] == 1
        assert stats['origins'] == ['http://example.com']

    def test_response_wiring(self):
        """Test responses carry request, url and connection like real ones."""
        transport = new_transport('http://example.com', new_queue().then_respond(200))

        response = transport.session().get('http://example.com/path?q=1')

        assert response.url == 'http://example.com/path?q=1'
        assert response.request.method == 'GET'
        assert response.connection is transport

    def test_stream_mode(self):
        """Test stream=True leaves the body unread until iterated."""
        transport = new_transport('http://example.com', new_queue().then_respond(200, 'abcdef'))

        response = transport.session().get('http://example.com/', stream=True)

        assert b''.join(response.iter_content(chunk_size=4)) == b'abcdef'

    def test_producer_runs_outside_lock(self):
        """Test a producer may call back into the transport."""
        transport = MockTransport()

        def inspecting(request):
            stats = transport.stats()
            response = requests.Response()
            response.status_code = 200
            response.encoding = 'utf-8'
            response._content = str(stats['matched_requests']).encode()
            return response

        transport.register_origin('http://example.com', new_queue().then_respond_with(inspecting))

        assert transport.session().get('http://example.com/').text == '1'

    def test_predicate_runs_under_lock(self):
        """Test predicates run with the lock held and producers without it."""
        transport = MockTransport()
        held = {}

        def predicate(request):
            held['predicate'] = transport._lock.locked()
            return True

        def producer(request):
            held['producer'] = transport._lock.locked()
            return build_response(request, 200)

        transport.register_origin(
            'http://example.com',
            new_queue().with_predicate(predicate).then_respond_with(producer),
        )
        transport.session().get('http://example.com/')

        assert held == {'predicate': True, 'producer': False}

    def test_custom_mount_prefixes(self):
        """Test session() mounts only the configured prefixes."""
        transport = new_transport(
            'http://example.com',
            new_queue().then_respond(200),
            config=MockConfig(mount_prefixes=('http://example.com',)),
        )
        session = transport.session()

        assert session.get_adapter('http://example.com/') is transport
        assert session.get_adapter('https://example.com/') is not transport


class TestLogging:
    """Logging of interceptions."""

    def test_unmatched_logged_as_warning(self, caplog):
        """Test unmatched requests produce a warning."""
        transport = new_transport('http://example.com', new_queue().get('/a'))

        with caplog.at_level(logging.WARNING, logger='rtqueue.mock'):
            with pytest.raises(MockNotRegistered):
                transport.session().get('http://example.com/b')

        assert 'No mock registered for GET http://example.com/b' in caplog.text

    def test_unknown_origin_logged(self, caplog):
        """Test unknown origins produce a warning."""
        transport = MockTransport()

        with caplog.at_level(logging.WARNING, logger='rtqueue.mock'):
            with pytest.raises(OriginNotRegistered):
                transport.session().get('http://nowhere.example/')

        assert 'Origin not registered: http://nowhere.example' in caplog.text

    def test_verbose_mode_logs_matches_at_info(self, caplog):
        """Test verbose_mode raises match logging to INFO."""
        transport = new_transport(
            'http://example.com',
            new_queue().then_respond(200),
            config=MockConfig(verbose_mode=True),
        )

        with caplog.at_level(logging.INFO, logger='rtqueue.mock'):
            transport.session().get('http://example.com/')

        assert 'Matched #1: GET http://example.com/' in caplog.text

    def test_log_level_from_config(self):
        """Test the transport applies the configured log level."""
        MockTransport(config=MockConfig(log_level='error'))

        assert logging.getLogger('rtqueue.mock').level == logging.ERROR
        MockTransport()

    def test_log_level_case_insensitive(self):
        """Test level names are accepted in any case."""
        MockTransport(config=MockConfig(log_level='WARNING'))

        assert logging.getLogger('rtqueue.mock').level == logging.WARNING
        MockTransport()

    def test_unknown_log_level(self):
        """Test an unknown level name fails with ValueError."""
        with pytest.raises(ValueError, match="Unknown log_level 'loud'"):
            MockTransport(config=MockConfig(log_level='loud'))

    def test_log_level_is_process_wide(self):
        """Test the last transport built sets the level for every transport."""
        verbose = MockTransport(config=MockConfig(verbose_mode=True, log_level='debug'))
        MockTransport(config=MockConfig(log_level='warning'))

        assert verbose.logger is logging.getLogger('rtqueue.mock')
        assert verbose.logger.level == logging.WARNING
        MockTransport()
