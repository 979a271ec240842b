#!/usr/bin/env python3
"""
Script to seed a development database with a theater, screen, seats, movie and user.
"""

import asyncio
import string
import sys
import os

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from movie_reservation_engine.database import init_database, close_database, get_db_session
from movie_reservation_engine.models import Movie, Screen, Seat, Theater, User


async def seed_catalog(rows: int = 5, seats_per_row: int = 8):
    """Create a demo theater with one screen of ``rows`` x ``seats_per_row`` seats."""
    print("🔧 Movie Reservation Engine - Catalog Seeding")
    print("=" * 50)
    
    await init_database()
    
    try:
        async with get_db_session() as db:
            theater = Theater(name="Demo Cinema", city="Springfield", address="1 Main Street")
            db.add(theater)
            await db.flush()
            
            screen = Screen(theater_id=theater.id, name="Screen 1", capacity=rows * seats_per_row)
            db.add(screen)
            await db.flush()
            
            for row_label in string.ascii_uppercase[:rows]:
                for column in range(1, seats_per_row + 1):
                    db.add(Seat(
                        screen_id=screen.id,
                        label=f"{row_label}{column}",
                        row_label=row_label,
                        column=column
                    ))
            
            movie = Movie(title="The Demo", genre="Drama", duration_minutes=120)
            db.add(movie)
            
            result = await db.execute(select(User).where(User.email == "demo@example.com"))
            user = result.scalar_one_or_none()
            if not user:
                user = User(email="demo@example.com", display_name="Demo User")
                db.add(user)
            
            await db.flush()
            
            print(f"✅ Theater:  {theater.id}")
            print(f"✅ Screen:   {screen.id} ({screen.capacity} seats)")
            print(f"✅ Movie:    {movie.id} ({movie.duration_minutes} min)")
            print(f"✅ User:     {user.id}")
    finally:
        await close_database()


async def list_screens():
    """List screens with their seat counts."""
    print("🎬 Screens")
    print("=" * 30)
    
    await init_database()
    
    try:
        async with get_db_session() as db:
            result = await db.execute(select(Screen).order_by(Screen.created_at))
            screens = result.scalars().all()
            
            if not screens:
                print("No screens found.")
            for screen in screens:
                print(f"📽  {screen.name or screen.id}")
                print(f"   ID: {screen.id}")
                print(f"   Capacity: {screen.capacity}")
                print()
    finally:
        await close_database()


async def main():
    if len(sys.argv) > 1 and sys.argv[1] == "list":
        await list_screens()
    else:
        await seed_catalog()


if __name__ == "__main__":
    print("Usage:")
    print("  python seed_catalog.py        # Seed demo catalog")
    print("  python seed_catalog.py list   # List screens")
    print()
    
    asyncio.run(main())
