"""Unit tests for the middleware pipeline.

Tests cover:
- Short-circuit semantics and stage ordering
- Body size limit
- Rate limit stage and 429 envelope
- JSON body parsing
"""

import json

import pytest

from src.shared.auth.rate_limiter import RateLimitPolicy
from src.shared.gateway.errors import ValidationError
from src.shared.gateway.models import InboundRequest
from src.shared.gateway.pipeline import (
    BodySizeLimitStage,
    MiddlewarePipeline,
    RateLimitStage,
    Stage,
    StageOutcome,
    parse_body,
)


def make_request(body=None, source_ip='10.0.0.1'):
    return InboundRequest(method='POST', path='/api/register', body=body, source_ip=source_ip)


class RecordingStage(Stage):
    """Stage that records calls and optionally responds."""

    def __init__(self, name, calls, response=None):
        self.name = name
        self.calls = calls
        self.response = response

    def process(self, request, request_id=None):
        self.calls.append(self.name)
        if self.response is not None:
            return StageOutcome.respond(self.response)
        return StageOutcome.proceed()


class TestStageOutcome:
    """Tests for StageOutcome."""

    def test_proceed_is_not_terminal(self):
        assert StageOutcome.proceed().is_terminal is False

    def test_respond_is_terminal(self):
        outcome = StageOutcome.respond({'statusCode': 418})

        assert outcome.is_terminal is True
        assert outcome.response == {'statusCode': 418}


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline.run."""

    def test_runs_all_stages_in_order_and_continues(self):
        """Should run every stage in order and return None."""
        calls = []
        pipeline = MiddlewarePipeline([RecordingStage(name, calls) for name in ('a', 'b', 'c')])

        assert pipeline.run(make_request()) is None
        assert calls == ['a', 'b', 'c']

    def test_first_response_short_circuits(self):
        """Should stop at the first stage that responds."""
        calls = []
        pipeline = MiddlewarePipeline([
            RecordingStage('a', calls),
            RecordingStage('b', calls, response={'statusCode': 413}),
            RecordingStage('c', calls, response={'statusCode': 429}),
        ])

        assert pipeline.run(make_request()) == {'statusCode': 413}
        assert calls == ['a', 'b']

    def test_empty_pipeline_continues(self):
        assert MiddlewarePipeline([]).run(make_request()) is None


class TestBodySizeLimitStage:
    """Tests for BodySizeLimitStage."""

    def test_allows_body_at_limit(self):
        """A body exactly at the limit passes."""
        stage = BodySizeLimitStage(max_bytes=10)

        assert stage.process(make_request('x' * 10)).is_terminal is False

    def test_allows_missing_body(self):
        assert BodySizeLimitStage(max_bytes=0).process(make_request()).is_terminal is False

    def test_rejects_body_over_limit(self):
        """Should answer 413 with the standard envelope."""
        stage = BodySizeLimitStage(max_bytes=10)

        outcome = stage.process(make_request('x' * 11))

        assert outcome.response['statusCode'] == 413
        body = json.loads(outcome.response['body'])
        assert body['success'] is False
        assert 'too large' in body['message']

    def test_measures_utf8_bytes(self):
        """Multi-byte characters count by encoded size."""
        stage = BodySizeLimitStage(max_bytes=4)

        assert stage.process(make_request('ééé')).is_terminal is True

    def test_default_limit_is_500_mb(self):
        """Should default to 500 MB and say so in the message."""
        stage = BodySizeLimitStage()

        assert stage.max_bytes == 524288000


class TestRateLimitStage:
    """Tests for RateLimitStage."""

    def test_rejects_after_policy_limit(self, rate_limiter):
        """Should answer 429 with retryAfter once the window is used up."""
        stage = RateLimitStage(rate_limiter, RateLimitPolicy(window_ms=300000, max_requests=2))

        assert stage.process(make_request()).is_terminal is False
        assert stage.process(make_request()).is_terminal is False
        outcome = stage.process(make_request())

        assert outcome.response['statusCode'] == 429
        assert outcome.response['headers']['Retry-After'] == '300'
        body = json.loads(outcome.response['body'])
        assert body['success'] is False
        assert body['message'] == 'Too many requests. Please try again later.'
        assert body['retryAfter'] == 300

    def test_keys_by_source_ip(self, rate_limiter):
        """Different source IPs are limited independently."""
        stage = RateLimitStage(rate_limiter, RateLimitPolicy(window_ms=60000, max_requests=1))

        assert stage.process(make_request(source_ip='10.0.0.1')).is_terminal is False
        assert stage.process(make_request(source_ip='10.0.0.2')).is_terminal is False
        assert stage.process(make_request(source_ip='10.0.0.1')).is_terminal is True

    def test_oversized_body_never_reaches_rate_limiter(self, rate_limiter, memory_backend):
        """Size check runs first, so rejected bodies consume no quota."""
        pipeline = MiddlewarePipeline([
            BodySizeLimitStage(max_bytes=5),
            RateLimitStage(rate_limiter, RateLimitPolicy(window_ms=60000, max_requests=1)),
        ])

        response = pipeline.run(make_request('x' * 6))

        assert response['statusCode'] == 413
        assert memory_backend.get_entry('10.0.0.1') is None
        assert pipeline.run(make_request('x')) is None
        assert memory_backend.get_entry('10.0.0.1').count == 1

    def test_rejection_carries_request_id(self):
        stage = BodySizeLimitStage(max_bytes=1)

        outcome = stage.process(make_request('xx'), 'req-7')

        assert json.loads(outcome.response['body'])['requestId'] == 'req-7'


class TestParseBody:
    """Tests for parse_body."""

    @pytest.mark.parametrize('body', [None, ''])
    def test_absent_body_parses_to_empty_mapping(self, body):
        assert parse_body(make_request(body)) == {}

    def test_parses_json_object(self):
        assert parse_body(make_request('{"email": "a@example.com", "n": [1, 2]}')) == {
            'email': 'a@example.com',
            'n': [1, 2],
        }

    @pytest.mark.parametrize('body', ['{not json', '{"a": 1', "{'a': 1}"])
    def test_malformed_json_is_validation_error(self, body):
        """Should raise a 400-kind error with a fixed message."""
        with pytest.raises(ValidationError) as exc_info:
            parse_body(make_request(body))

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == 'Invalid JSON format in request body'

    @pytest.mark.parametrize('body', ['[1, 2]', '"text"', '42', 'null'])
    def test_non_object_json_is_validation_error(self, body):
        """Should require a JSON object."""
        with pytest.raises(ValidationError) as exc_info:
            parse_body(make_request(body))

        assert exc_info.value.message == 'Request body must be a JSON object'
