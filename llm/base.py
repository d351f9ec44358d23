from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class LLM(ABC):
    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the assistant's reply as plain text."""
        ...
