"""
Sparkline Generator for rating trajectories.

Draws a small chart of a player's rating over one season.
Uses Pillow for image generation.
"""

import io
from typing import List, Optional, Sequence

from PIL import Image, ImageDraw, ImageFont

from league.services.elo import RatingPoint


class SparklineGenerator:
    """
    Generates sparkline images for rating trajectories.

    The line is green when the season went up overall and red otherwise;
    each point is coloured by the match that produced it.
    """

    # Chart dimensions
    WIDTH = 200
    HEIGHT = 60
    PADDING = 5

    # Labeled variant
    LABELED_WIDTH = 250
    LABELED_HEIGHT = 80
    LABELED_PADDING = 10
    LABEL_SPACE = 30

    # Colors
    BG_COLOR = (45, 45, 50)
    LINE_COLOR = (100, 200, 100)  # Green for gains
    DECLINE_COLOR = (200, 100, 100)  # Red for losses
    POINT_COLOR = (255, 255, 255)
    GRID_COLOR = (60, 60, 65)
    LABEL_COLOR = (150, 150, 150)

    POINT_RADIUS = 3

    def _series(self, trajectory: Sequence[RatingPoint]):
        """Ratings to plot (starting value first) and the change at each."""
        ratings = [trajectory[0].rating_before] + [p.rating_after for p in trajectory]
        changes = [0] + [p.delta for p in trajectory]
        return ratings, changes

    def _plot(
        self,
        draw: ImageDraw.ImageDraw,
        ratings: List[int],
        changes: List[int],
        left: int,
        top: int,
        right: int,
        bottom: int,
    ) -> None:
        chart_width = right - left
        chart_height = bottom - top

        low = min(ratings)
        high = max(ratings)
        spread = high - low or 1

        points = []
        last = len(ratings) - 1
        for i, rating in enumerate(ratings):
            x = left + (i * chart_width) // last
            # y grows downward
            y = bottom - int((rating - low) / spread * chart_height)
            points.append((x, y))

        line_color = self.LINE_COLOR if ratings[-1] >= ratings[0] else self.DECLINE_COLOR
        draw.line(points, fill=line_color, width=2)

        r = self.POINT_RADIUS
        for (x, y), change in zip(points, changes):
            point_color = self.LINE_COLOR if change >= 0 else self.DECLINE_COLOR
            draw.ellipse(
                [(x - r, y - r), (x + r, y + r)],
                fill=point_color,
                outline=self.POINT_COLOR,
            )

    @staticmethod
    def _to_png(image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def generate(self, trajectory: Optional[Sequence[RatingPoint]]) -> Optional[bytes]:
        """
        Generate a sparkline PNG from a rating trajectory.

        Args:
            trajectory: Rating steps of one player in one season, oldest first

        Returns:
            PNG image as bytes, or None without any match
        """
        if not trajectory:
            return None

        ratings, changes = self._series(trajectory)

        image = Image.new("RGBA", (self.WIDTH, self.HEIGHT), self.BG_COLOR)
        draw = ImageDraw.Draw(image)

        left = self.PADDING
        right = self.WIDTH - self.PADDING
        top = self.PADDING
        bottom = self.HEIGHT - self.PADDING

        # Subtle grid lines
        for i in range(3):
            y = top + ((bottom - top) * i) // 2
            draw.line([(left, y), (right, y)], fill=self.GRID_COLOR, width=1)

        self._plot(draw, ratings, changes, left, top, right, bottom)
        return self._to_png(image)

    def generate_with_labels(self, trajectory: Optional[Sequence[RatingPoint]]) -> Optional[bytes]:
        """
        Generate a sparkline with the season's lowest and highest rating.

        Args:
            trajectory: Rating steps of one player in one season, oldest first

        Returns:
            PNG image as bytes, or None without any match
        """
        if not trajectory:
            return None

        ratings, changes = self._series(trajectory)

        image = Image.new("RGBA", (self.LABELED_WIDTH, self.LABELED_HEIGHT), self.BG_COLOR)
        draw = ImageDraw.Draw(image)
        font = ImageFont.load_default()

        padding = self.LABELED_PADDING
        left = padding + self.LABEL_SPACE
        right = self.LABELED_WIDTH - padding
        top = padding
        bottom = self.LABELED_HEIGHT - padding

        draw.text((padding, top), str(max(ratings)), fill=self.LABEL_COLOR, font=font)
        draw.text((padding, bottom - 10), str(min(ratings)), fill=self.LABEL_COLOR, font=font)

        self._plot(draw, ratings, changes, left, top, right, bottom)
        return self._to_png(image)


# Singleton instance
sparkline_generator = SparklineGenerator()
