from pathlib import Path
import shutil
import tempfile

directories_to_delete = []


def make_temp_dir(prefix: str = "ml_examples_") -> Path:
    directory = Path(tempfile.mkdtemp(prefix=prefix))
    directories_to_delete.append(directory)
    return directory


def cleanup_on_shutdown():
    for directory in directories_to_delete:
        shutil.rmtree(directory, ignore_errors=True)
    directories_to_delete.clear()
