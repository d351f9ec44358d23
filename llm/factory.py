from .base import LLM
from .ollama import OllamaLLM


def make_llm(
    backend: str = "ollama",
    model: str = "llama3.1:8b",
    endpoint: str = "http://localhost:11434",
    offline: bool = True,
    keep_alive: str | None = None,
) -> LLM:
    backend = (backend or "ollama").lower()

    # Practice documents stay on the premises unless explicitly allowed
    if offline and not (
        endpoint.startswith("http://localhost") or endpoint.startswith("http://127.0.0.1")
    ):
        raise RuntimeError("Offline mode: only localhost endpoints are allowed.")

    if backend == "ollama":
        return OllamaLLM(model=model, endpoint=endpoint, keep_alive=keep_alive)

    raise RuntimeError(f"Unsupported backend: {backend}")


def make_llm_from_config(cfg: dict) -> LLM:
    llm_cfg = cfg.get("llm", {}) or {}
    return make_llm(
        backend=str(llm_cfg.get("backend", "ollama")),
        model=str(llm_cfg.get("model", "llama3.1:8b")),
        endpoint=str(llm_cfg.get("endpoint", "http://localhost:11434")),
        offline=bool(llm_cfg.get("offline", True)),
        keep_alive=llm_cfg.get("keep_alive"),
    )
