"""データベース接続。

非同期エンジン、セッションファクトリ、ORMモデルの基底クラス、
およびリクエスト単位のセッションを提供するFastAPI依存性を定義する。
"""

from collections.abc import AsyncGenerator

from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from repo_gateway.config import settings

# SQLiteはINTEGER PRIMARY KEYのみ自動採番する
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
)

# コミット後もロード済みの属性を参照できるよう失効させない
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """全ORMモデル共通の宣言的基底クラス。"""

    pass


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """リクエスト単位の非同期セッションを提供するFastAPI依存性。

    ハンドラーが正常に終了した場合は未コミットの変更をコミットし、
    例外が発生した場合はロールバックして例外を再送出する。
    いずれの場合もセッションは最後にクローズする。
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
