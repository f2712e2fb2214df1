from recall.capture import ChangeDetector, crop_to_window, encode_png

from conftest import make_image


def test_encode_png():
    assert encode_png(make_image()).startswith(b"\x89PNG")


def test_change_detector_compares_bytes_app_and_display():
    detector = ChangeDetector()
    white = encode_png(make_image((255, 255, 255)))
    black = encode_png(make_image((0, 0, 0)))

    assert detector.has_changed(white, "Code", 1)
    detector.accept(white, "Code", 1)
    assert not detector.has_changed(white, "Code", 1)
    assert detector.has_changed(black, "Code", 1)
    assert detector.has_changed(white, "Firefox", 1)
    assert detector.has_changed(white, "Code", 2)

    detector.reset()
    assert detector.has_changed(white, "Code", 1)


def test_crop_to_window_clamps_to_frame():
    image = make_image(size=(100, 80))
    cropped = crop_to_window(image, {"x": 60, "y": 50, "width": 100, "height": 100})
    assert cropped.size == (40, 30)


def test_crop_to_window_applies_display_origin():
    image = make_image(size=(100, 80))
    cropped = crop_to_window(image, {"x": 1930, "y": 10, "width": 20, "height": 20}, origin=(1920, 0))
    assert cropped.size == (20, 20)


def test_crop_without_usable_geometry_returns_frame():
    image = make_image(size=(100, 80))
    assert crop_to_window(image, None) is image
    assert crop_to_window(image, {"x": 0, "y": 0, "width": 100, "height": 80}) is image
    assert crop_to_window(image, {"x": 500, "y": 500, "width": 10, "height": 10}) is image
