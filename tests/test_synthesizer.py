import pytest
from conftest import FakeLLM

import synthesizer as sz
from llm.factory import make_llm
from llm.ollama import OllamaLLM


def test_context_is_placed_into_template():
    msgs = sz.build_messages("Frage?", "KONTEXT {mit Klammern}", "Regeln\n{context}\nEnde")
    assert msgs[0] == {"role": "system", "content": "Regeln\nKONTEXT {mit Klammern}\nEnde"}
    assert msgs[1] == {"role": "user", "content": "Frage?"}


def test_template_without_slot_gets_context_appended():
    assert sz.render_system_prompt("Regeln", "ctx") == "Regeln\n\nctx"


def test_generate_answer_uses_config_temperature():
    llm = FakeLLM("  Antwort.  ")
    seen = {}

    def chat(messages, temperature=0.3, max_tokens=None):
        seen.update(temperature=temperature, max_tokens=max_tokens)
        return FakeLLM.chat(llm, messages, temperature, max_tokens)

    llm.chat = chat
    out = sz.generate_answer(
        "Q", "ctx", "{context}", llm=llm, cfg={"llm": {"temperature": 0.1, "max_tokens": 256}}
    )
    assert out == "Antwort."
    assert seen == {"temperature": 0.1, "max_tokens": 256}


def test_generation_errors_propagate():
    with pytest.raises(ConnectionError):
        sz.generate_answer("Q", "ctx", "{context}", llm=FakeLLM(error=ConnectionError("down")))


def test_offline_guard():
    with pytest.raises(RuntimeError):
        make_llm(endpoint="http://example.com:11434")
    llm = make_llm(endpoint="http://localhost:11434", model="m")
    assert isinstance(llm, OllamaLLM)
    assert llm.base == "http://localhost:11434"


def test_ollama_chat_payload(monkeypatch):
    captured = {}

    class _Resp:
        def raise_for_status(self):
            pass

        def json(self):
            return {"message": {"role": "assistant", "content": "Hallo"}}

    def fake_post(url, json=None, timeout=None):
        captured.update(url=url, payload=json)
        return _Resp()

    monkeypatch.setattr("llm.ollama.requests.post", fake_post)
    llm = OllamaLLM(model="llama3.1:8b", endpoint="localhost:11434", keep_alive="30m")
    assert llm.chat([{"role": "user", "content": "hi"}], temperature=0.3) == "Hallo"
    assert captured["url"] == "http://localhost:11434/api/chat"
    assert captured["payload"]["options"] == {"temperature": 0.3}
    assert captured["payload"]["keep_alive"] == "30m"
    assert captured["payload"]["stream"] is False
