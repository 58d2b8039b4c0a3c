import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Union

from jinja2 import Environment

logger = logging.getLogger(__name__)

Value = Union[str, int, float]

ALLOWED_VALUE = re.compile(r"^[A-Za-z0-9 ()\-.,]*$")
NUMBER = re.compile(r"^-?\d+(\.\d+)?$")

HTML_TEMPLATE = Environment(autoescape=True).from_string("""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Submissions</title>
</head>
<body>
  <h1>Submissions</h1>
  <p>{{ submissions|length }} total</p>
{% for submission in submissions %}
  <div class="submission">
    <p class="timestamp">{{ submission.timestamp }}</p>
    <ul>
{% for key, value in submission.data.items() %}
      <li><strong>{{ key }}</strong>: {{ value }}</li>
{% endfor %}
    </ul>
  </div>
{% endfor %}
</body>
</html>
""")


def _coerce(value: Value) -> Value:
    # only values whose text survives the conversion unchanged become numbers
    if isinstance(value, str) and NUMBER.match(value):
        number = float(value) if "." in value else int(value)
        if str(number) == value:
            return number
    return value


class SubmissionLogger:
    """Append-only key/value submissions mirrored into an HTML page and a JSON array."""

    def __init__(self, html_path: Path, json_path: Path, max_field_length: int = 25):
        self.html_path = Path(html_path)
        self.json_path = Path(json_path)
        self.max_field_length = max_field_length

    def ensure_files(self) -> None:
        if not self.json_path.exists():
            self._write_json([])
        if not self.html_path.exists():
            self._write_html([])

    def validate(self, record: Dict[str, Value]) -> List[str]:
        """Return one message per invalid field; empty when the record is acceptable."""
        if not record:
            return ["No data provided. Use /submit?key=value"]

        issues = []
        for key, value in record.items():
            if not key:
                issues.append("Field names must not be empty")
                continue
            text = str(value)
            if len(text) > self.max_field_length:
                issues.append(
                    f"Field '{key}' exceeds the maximum length of {self.max_field_length} characters"
                )
            if not ALLOWED_VALUE.match(text):
                issues.append(
                    f"Field '{key}' contains invalid characters. "
                    "Only letters, numbers, spaces and ()-., are allowed"
                )
        return issues

    def append(self, record: Dict[str, Value]) -> Dict:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": {key: _coerce(value) for key, value in record.items()},
        }
        submissions = self.list_all()
        submissions.append(entry)
        self._write_json(submissions)
        self._write_html(submissions)
        logger.info(f"Stored submission #{len(submissions)} with fields {list(record)}")
        return entry

    def list_all(self) -> List[Dict]:
        if not self.json_path.exists():
            return []
        try:
            data = json.loads(self.json_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Error reading submissions from {self.json_path}: {e}")
            return []
        if not isinstance(data, list):
            logger.error(f"Ignoring {self.json_path}: expected a JSON array")
            return []
        return data

    def reset_all(self) -> None:
        self._write_json([])
        self._write_html([])
        logger.info("All submissions deleted")

    def _write_json(self, submissions: List[Dict]) -> None:
        self.json_path.parent.mkdir(parents=True, exist_ok=True)
        self.json_path.write_text(json.dumps(submissions, indent=2), encoding="utf-8")

    def _write_html(self, submissions: List[Dict]) -> None:
        self.html_path.parent.mkdir(parents=True, exist_ok=True)
        self.html_path.write_text(HTML_TEMPLATE.render(submissions=submissions), encoding="utf-8")
