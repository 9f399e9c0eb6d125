import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13", "3.14"]
LAYERS = ["domain", "application", "integration"]

nox.options.sessions = ["tests"]


def _install(session: nox.Session) -> None:
    session.run("poetry", "install", "--with", "test", "--all-extras", external=True)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Whole suite, once per supported interpreter."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
@nox.parametrize("layer", LAYERS)
def tests_layer(session: nox.Session, layer: str) -> None:
    """One test layer, selected by the marker tests/conftest.py assigns."""
    _install(session)
    session.run("pytest", "-m", layer, *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def quick(session: nox.Session) -> None:
    _install(session)
    session.run("pytest", "-m", "not slow", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def scenarios(session: nox.Session) -> None:
    """Gherkin scenarios for routing, safety windows and digests."""
    _install(session)
    session.run("pytest", "tests/safety_notifications/bdd/", *session.posargs)
