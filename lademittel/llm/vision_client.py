from typing import Sequence  # ---------- vision LLM interface ----------


class VisionClient:
    """
    Interface: implement .generate_raw(prompt, images=...) -> str

    ``images`` are base64-encoded PNG page renderings, in page order.
    Implementations return the model's raw text; parsing happens upstream.
    Transport errors are raised as OracleFailure.
    """

    def generate_raw(self, prompt: str, *, images: Sequence[str] = ()) -> str:
        raise NotImplementedError
