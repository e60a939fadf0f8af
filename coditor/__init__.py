import os
from pathlib import Path


def _load_env_file() -> None:
	# Tests must never pick up a developer's real credentials
	if os.getenv("PYTEST_CURRENT_TEST"):
		return
	env_path = Path(os.getenv("CODITOR_ENV_FILE", ".env"))
	if not env_path.is_file():
		return
	try:
		lines = env_path.read_text(encoding="utf-8").splitlines()
	except OSError:
		return
	for raw in lines:
		line = raw.strip()
		if line.startswith("export "):
			line = line[len("export "):].lstrip()
		if not line or line.startswith("#") or "=" not in line:
			continue
		name, value = line.split("=", 1)
		name = name.strip()
		value = value.strip()
		if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
			value = value[1:-1]
		# Real environment wins over the file
		if name and name not in os.environ:
			os.environ[name] = value


_load_env_file()
