"""
Model boundary tests.

The stub must be scriptable and deterministic; the Ollama backend must
build chat messages correctly, retry transport errors with exponential
backoff and never raise.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from agent.prompting import SYSTEM_PROMPT
from inference import ModelRequest, OllamaModelBackend, StubModelBackend
from inference.ollama import DEFAULT_OPTIONS
from inference.stub import DEFAULT_OUTPUTS


def _ok_response(content):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"message": {"role": "assistant", "content": content}}
    return response


class TestStubModelBackend:

    def test_default_outputs(self):
        backend = StubModelBackend()
        for task, output in DEFAULT_OUTPUTS.items():
            response = backend.generate(ModelRequest(task=task, prompt="Hola"))
            assert response.ok
            assert response.output == output

    def test_scripted_list_consumed_in_order(self):
        backend = StubModelBackend(responses={"respond": ["uno", "dos"]})
        outputs = [backend.generate(ModelRequest(task="respond", prompt="x")).output for _ in range(3)]
        assert outputs == ["uno", "dos", DEFAULT_OUTPUTS["respond"]]

    def test_failing_tasks(self):
        backend = StubModelBackend(failing_tasks=["extract_entities"])
        response = backend.generate(ModelRequest(task="extract_entities", prompt="x"))

        assert response.status == "recoverable_error"
        assert response.error_type == "invalid_output"
        assert not backend.generate(ModelRequest(task="fail", prompt="x")).ok

    def test_requests_recorded(self):
        backend = StubModelBackend()
        backend.generate(ModelRequest(task="respond", prompt="Hola", trace_id="t-1"))
        assert backend.requests[0].trace_id == "t-1"


class TestOllamaModelBackend:

    def test_messages_layout(self):
        backend = OllamaModelBackend("llama3")
        request = ModelRequest(
            task="detect_intents",
            prompt="quiero una prueba",
            system="Eres un clasificador",
            history=[
                {"role": "user", "content": "Hola"},
                {"role": "assistant", "content": ""},
                {"role": "assistant", "content": "¡Hola!"},
            ],
        )
        messages = backend._build_messages(request)

        assert messages == [
            {"role": "system", "content": "Eres un clasificador"},
            {"role": "user", "content": "Hola"},
            {"role": "assistant", "content": "¡Hola!"},
            {"role": "user", "content": "quiero una prueba"},
        ]

    def test_default_system_prompt(self):
        messages = OllamaModelBackend("llama3")._build_messages(ModelRequest(task="respond", prompt="x"))
        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}

    @patch("inference.ollama.requests.post")
    def test_success_posts_chat_payload(self, mock_post):
        mock_post.return_value = _ok_response('  {"intents": ["saludo"]}  ')
        backend = OllamaModelBackend("llama3", base_url="http://ollama:11434/", options={"temperature": 0.5})

        response = backend.generate(ModelRequest(task="detect_intents", prompt="Hola", timeout_s=12))

        assert response.status == "success"
        assert response.output == '{"intents": ["saludo"]}'
        assert response.metadata["attempts"] == 1

        args, kwargs = mock_post.call_args
        assert args[0] == "http://ollama:11434/api/chat"
        assert kwargs["timeout"] == 12
        payload = kwargs["json"]
        assert payload["model"] == "llama3"
        assert payload["stream"] is False
        assert payload["options"]["temperature"] == 0.5
        assert payload["options"]["top_k"] == DEFAULT_OPTIONS["top_k"]

    @patch("inference.ollama.time.sleep")
    @patch("inference.ollama.requests.post")
    def test_retries_with_exponential_backoff(self, mock_post, mock_sleep):
        mock_post.side_effect = [
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
            _ok_response("Hola"),
        ]
        backend = OllamaModelBackend("llama3")

        response = backend.generate(ModelRequest(task="respond", prompt="Hola"))

        assert response.ok
        assert response.metadata["attempts"] == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2.0, 4.0]

    @patch("inference.ollama.time.sleep")
    @patch("inference.ollama.requests.post")
    def test_exhausted_retries_is_recoverable(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.Timeout("slow")
        response = OllamaModelBackend("llama3").generate(ModelRequest(task="respond", prompt="x"))

        assert mock_post.call_count == 3
        assert response.status == "recoverable_error"
        assert response.error_type == "timeout"

    @patch("inference.ollama.requests.post")
    def test_http_error_is_fatal_without_retry(self, mock_post):
        response_500 = MagicMock()
        response_500.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        mock_post.return_value = response_500

        response = OllamaModelBackend("llama3").generate(ModelRequest(task="respond", prompt="x"))

        assert mock_post.call_count == 1
        assert response.status == "fatal_error"
        assert response.error_type == "backend_unavailable"
