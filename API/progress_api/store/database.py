from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from progress_api.core.settings import settings

engine = create_async_engine(settings.database_url, pool_pre_ping=True, echo=settings.database_echo)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
