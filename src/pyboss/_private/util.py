import shutil
import subprocess

EPSILON_DISPLAY = '&#x03f5;'  # Greek lunate epsilon symbol U+03F5


def check_graphviz_installed():
    """True if the graphviz `dot` executable can be run."""
    if shutil.which("dot") is None:
        return False
    try:
        subprocess.run(["dot", "-V"], check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def float_format(num, digits=3):
    """Short display form of a number: trailing zeros stripped, no -0."""
    s = '{0:.{1}f}'.format(num, digits).rstrip('0').rstrip('.')
    return '0' if s == '-0' else s


def symbol_format(sym):
    """Display form of a transition symbol, with the empty symbol as epsilon."""
    return sym if sym != '' else EPSILON_DISPLAY
