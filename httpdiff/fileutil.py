"""Line counting for payload files."""

DEFAULT_MAX_LINE_SIZE = 1024 * 1024


def file_line_count(file_name):
    """Count the lines of a file whose lines are at most 1 MiB long."""
    return file_line_count_with_line_size(file_name, DEFAULT_MAX_LINE_SIZE)


def file_line_count_with_line_size(file_name, line_size):
    """Count the lines of a file, stopping at the first line longer than ``line_size`` bytes.

    Raises ``OSError`` when the file cannot be opened.
    """
    count = 0
    with open(file_name, "rb") as handle:
        for line in handle:
            if len(line) > line_size:
                break
            count += 1
    return count