"""Database configuration and initialization."""
from flask import current_app
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

EXTENSION_KEY = 'pos_ledger.db'


def build_engine(database_uri: str, echo: bool = False):
    """Create an engine with pool settings suited to the backend."""
    if database_uri.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False}}
        if database_uri in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs['poolclass'] = StaticPool
        return create_engine(database_uri, echo=echo, **kwargs)

    return create_engine(
        database_uri,
        echo=echo,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=10,
        max_overflow=20
    )


def build_session_factory(engine):
    """Thread-local session registry bound to the engine."""
    return scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )


def init_db(app):
    """Initialize database connection and tie its lifecycle to the app."""
    engine = build_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False)
    )
    db_session = build_session_factory(engine)

    app.extensions[EXTENSION_KEY] = {
        'engine': engine,
        'session': db_session,
    }

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()

    return engine


def create_all(engine=None):
    """Create every table known to the models package."""
    # Import models so they register on Base.metadata
    import pos_ledger.models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def get_engine():
    """Get the engine of the current application."""
    return current_app.extensions[EXTENSION_KEY]['engine']


def get_session():
    """Get database session of the current application."""
    return current_app.extensions[EXTENSION_KEY]['session']
