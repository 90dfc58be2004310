from dataclasses import dataclass


@dataclass(frozen=True)
class Ellipse2D:
    cx: float       # center in image pixels
    cy: float
    major: float    # full axis lengths, as returned by cv2.fitEllipse
    minor: float
    angle_deg: float

    @property
    def center(self) -> tuple[float, float]: return (self.cx, self.cy)

    @property
    def axis_ratio(self) -> float:
        """major / minor; a straight edge fits as a needle with a very large ratio."""
        return self.major / max(self.minor, 1e-9)

    @classmethod
    def from_rotated_rect(cls, rect) -> "Ellipse2D":
        """
        Build from OpenCV's ((cx, cy), (w, h), angle) tuple.

        OpenCV does not order w/h, so the axes are swapped (and the angle
        turned by 90 deg) when needed to keep major >= minor.
        """
        (cx, cy), (w, h), angle = rect
        if w < h:
            w, h = h, w
            angle = angle + 90.0
        return cls(float(cx), float(cy), float(w), float(h), float(angle) % 180.0)

    def to_rotated_rect(self) -> tuple[tuple[float, float], tuple[float, float], float]:
        return (float(self.cx), float(self.cy)), (float(self.major), float(self.minor)), float(self.angle_deg)
