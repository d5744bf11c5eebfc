# frontend/view.py
from typing import Any, Dict

from core.reducer import UIState


def render(state: UIState) -> Dict[str, Any]:
    """Chuyển UIState thành dict thuần để bất kỳ UI nào cũng hiển thị được."""
    alert = None
    if state.alert is not None:
        alert = {
            "title": state.alert.title,
            "actions": [{"action": b.action, "label": b.label} for b in state.alert.buttons],
        }

    return {
        "input_text": state.input_text,
        "input_disabled": state.busy,
        "status_label": state.status_label,
        "images": [
            {
                "id": img.id,
                "url": img.url,
                "file_name": img.file_name,
                "content_type": img.content_type,
            }
            for img in state.images
        ],
        "alert": alert,
        "logs": [line.message for line in state.logs],
    }
