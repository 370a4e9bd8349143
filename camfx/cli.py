"""camfx command-line interface."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import cv2
import psutil
from tqdm import tqdm

from . import __version__
from .config import CamFXConfig
from .core.pipeline import EffectPipeline
from .core.segmentation import DnnSegmenter, NullSegmenter, StaticMaskSegmenter
from .core.transition import SettingsTransition
from .core.types import SCALAR_FIELDS, BackgroundMode, Degradation, Preset, Settings
from .engine import EffectEngine
from .presets import PresetStore, SettingsStore
from .utils.assets import INSTALLABLE_MODES, AssetError, BackgroundLibrary

IMAGE_SUFFIXES = {'.png', '.jpg', '.jpeg', '.bmp', '.webp', '.tif', '.tiff'}

MODE_CHOICES = [mode.value for mode in BackgroundMode]
IMAGE_MODE_CHOICES = [mode.value for mode in INSTALLABLE_MODES]


# Configure logging
def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Setup logging configuration."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )


def _print_traceback(ctx) -> None:
    if ctx.obj['verbose']:
        import traceback
        traceback.print_exc()


def _settings_overrides(kwargs) -> dict:
    """Per-field overrides given on the command line."""
    overrides = {name: kwargs[name] for name in SCALAR_FIELDS if kwargs.get(name) is not None}
    if kwargs.get('mode'):
        overrides['background_mode'] = BackgroundMode(kwargs['mode'])
    if kwargs.get('mirror') is not None:
        overrides['mirror_video'] = kwargs['mirror']
    return overrides


def _describe_settings(settings: Settings) -> str:
    return (f"mode={settings.background_mode.value} smoothing={settings.skin_smoothing_amount:.2f} "
            f"brightness={settings.brightness:+.2f} contrast={settings.contrast:.2f} "
            f"saturation={settings.saturation:.2f} warmth={settings.warmth:+.2f} "
            f"sharpness={settings.sharpness:.2f} mirror={'on' if settings.mirror_video else 'off'}")


def _build_segmenter(config: CamFXConfig, mask: Optional[Path], model: Optional[Path]):
    if mask:
        return StaticMaskSegmenter.from_file(mask)
    model = model or config.get("segmentation_model")
    if model:
        return DnnSegmenter(model, input_size=config.segmentation_input_size)
    return NullSegmenter()


# Shared effect options for commands that build a settings value
def effect_options(func):
    options = [
        click.option('--preset', 'preset_name', help='Start from a stored preset'),
        click.option('--mode', type=click.Choice(MODE_CHOICES), help='Background mode'),
        click.option('--smoothing', 'skin_smoothing_amount', type=click.FloatRange(0.0, 1.0),
                     help='Skin smoothing amount (0.0-1.0)'),
        click.option('--brightness', type=click.FloatRange(-1.0, 1.0), help='Brightness offset (-1.0-1.0)'),
        click.option('--contrast', type=click.FloatRange(0.0, 2.0), help='Contrast multiplier (0.0-2.0)'),
        click.option('--saturation', type=click.FloatRange(0.0, 2.0), help='Saturation multiplier (0.0-2.0)'),
        click.option('--warmth', type=click.FloatRange(-1.0, 1.0), help='Warmth (-1.0 cool to 1.0 warm)'),
        click.option('--sharpness', type=click.FloatRange(0.0, 1.0), help='Sharpness (0.0-1.0)'),
        click.option('--mirror/--no-mirror', default=None, help='Mirror the output horizontally'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.option('--quiet', '-q', is_flag=True, help='Quiet output (warnings only)')
@click.option('--config-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Configuration directory (default: ~/.camfx)')
@click.version_option(version=__version__, prog_name='camfx')
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool, config_dir: Optional[Path]):
    """camfx - Real-time camera effects.

    Skin smoothing, background blur and replacement, and color
    adjustment for webcam frames, with presets and animated transitions.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet
    ctx.obj['config'] = CamFXConfig(config_dir)
    setup_logging(verbose, quiet)


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('-o', '--output', 'output_path', required=True,
              type=click.Path(dir_okay=False, path_type=Path), help='Output image or video file')
@effect_options
@click.option('--mask', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Static foreground mask image')
@click.option('--model', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='ONNX person segmentation model')
@click.option('--background', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Replacement image for the custom background mode')
@click.option('--codec', default='mp4v', help='FourCC of the output video codec')
@click.pass_context
def process(ctx, input_path: Path, output_path: Path, **kwargs):
    """Apply effects to an image or a video file.

    Examples:

        # Apply a stored preset
        camfx process photo.jpg -o out.jpg --preset "Strong Blur" --mask person.png

        # Replace the background with an image
        camfx process clip.mp4 -o out.mp4 --mode custom --background beach.jpg --model seg.onnx

        # Color only
        camfx process photo.jpg -o out.jpg --brightness 0.1 --warmth 0.3 --no-mirror
    """
    try:
        config = ctx.obj['config']

        if kwargs['preset_name']:
            preset = PresetStore(config.presets_file).get(kwargs['preset_name'])
            settings = preset.effective_settings()
            custom_image_path = preset.image_path
        else:
            preset = None
            settings, custom_image_path = SettingsStore(config.settings_file).load()

        settings = settings.replace(**_settings_overrides(kwargs))
        settings.validate()

        if kwargs['background']:
            custom_image_path = str(kwargs['background'])
        settings = BackgroundLibrary(config.backgrounds_dir).resolve(settings, custom_image_path)

        segmenter = _build_segmenter(config, kwargs['mask'], kwargs['model'])
        engine = EffectEngine(EffectPipeline(segmenter), settings=settings, transition_duration=0)

        click.echo(f"🎬 camfx v{__version__}")
        click.echo(f"📁 Input:  {input_path}")
        click.echo(f"📁 Output: {output_path}")
        if preset:
            click.echo(f"🎯 Preset: {preset.name}")
        click.echo(f"🔧 {_describe_settings(settings)}")

        if input_path.suffix.lower() in IMAGE_SUFFIXES:
            _process_image(engine, input_path, output_path)
        else:
            _process_video(engine, input_path, output_path, kwargs['codec'], ctx.obj['quiet'])

        stats = engine.update_statistics()
        click.echo(f"\n✅ Processed {stats.frames_processed:,} frame(s)")
        click.echo(f"⏱️  Average latency: {stats.avg_latency_ms:.1f} ms ({stats.current_fps:.1f} FPS)")

        missing_masks = engine.degradation_count(Degradation.SEGMENTATION_UNAVAILABLE)
        if settings.background_mode.requires_mask and missing_masks == stats.frames_processed:
            click.echo("⚠️  Segmentation produced no mask; background effect was not applied. "
                       "Use --mask or --model.", err=True)
        elif stats.degradations:
            for reason, count in sorted(stats.degradations.items()):
                click.echo(f"⚠️  {reason}: {count} frame(s)", err=True)

    except KeyboardInterrupt:
        click.echo("\n🛑 Processing cancelled by user", err=True)
    except KeyError as e:
        click.echo(f"❌ {e.args[0] if e.args else e}", err=True)
    except Exception as e:
        click.echo(f"\n❌ Error: {e}", err=True)
        _print_traceback(ctx)


def _process_image(engine: EffectEngine, input_path: Path, output_path: Path) -> None:
    frame = cv2.imread(str(input_path), cv2.IMREAD_COLOR)
    if frame is None:
        raise click.ClickException(f"Could not read image: {input_path}")

    result, _ = engine.process_frame(frame)
    if not cv2.imwrite(str(output_path), result):
        raise click.ClickException(f"Could not write image: {output_path}")


def _process_video(engine: EffectEngine, input_path: Path, output_path: Path,
                   codec: str, quiet: bool) -> None:
    capture = cv2.VideoCapture(str(input_path))
    if not capture.isOpened():
        raise click.ClickException(f"Could not open video: {input_path}")

    fps = capture.get(cv2.CAP_PROP_FPS) or 30.0
    width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
    total = int(capture.get(cv2.CAP_PROP_FRAME_COUNT)) or None

    writer = cv2.VideoWriter(str(output_path), cv2.VideoWriter_fourcc(*codec[:4]), fps, (width, height))
    if not writer.isOpened():
        capture.release()
        raise click.ClickException(f"Could not open video writer for {output_path} ({codec})")

    try:
        with tqdm(total=total, desc="Processing", unit="frame", disable=quiet) as pbar:
            frame_index = 0
            while True:
                ok, frame = capture.read()
                if not ok:
                    break
                result, _ = engine.process_frame(frame, now=frame_index / fps)
                writer.write(result)
                frame_index += 1
                pbar.update(1)
    finally:
        capture.release()
        writer.release()


@cli.command()
@click.argument('from_preset')
@click.argument('to_preset')
@click.option('--duration', type=float, help='Transition duration in seconds (default: from config)')
@click.option('--steps', type=click.IntRange(2, 100), default=5, help='Number of samples to print')
@click.option('--json-output', is_flag=True, help='Output in JSON format')
@click.pass_context
def transition(ctx, from_preset: str, to_preset: str, duration: Optional[float],
               steps: int, json_output: bool):
    """Show the settings a transition passes through between two presets.

    Examples:

        camfx transition "No Effect" "Strong Blur"
        camfx transition "No Effect" "Strong Blur" --duration 1 --steps 11
    """
    try:
        config = ctx.obj['config']
        store = PresetStore(config.presets_file)
        start = store.get(from_preset).effective_settings()
        end = store.get(to_preset).effective_settings()
        duration = config.transition_duration if duration is None else duration

        animation = SettingsTransition(start, end, duration).start(now=0.0)
        samples = []
        for step in range(steps):
            t = duration * step / (steps - 1)
            samples.append((t, animation.current_settings(t)))

        if json_output:
            click.echo(json.dumps([{"time": t, "settings": s.to_record()} for t, s in samples], indent=2))
            return

        click.echo(f"🔄 {from_preset} -> {to_preset} over {duration:.2f}s")
        click.echo("=" * 50)
        for t, settings in samples:
            click.echo(f"  t={t:5.2f}s  {_describe_settings(settings)}")

    except KeyError as e:
        click.echo(f"❌ {e.args[0] if e.args else e}", err=True)
    except Exception as e:
        click.echo(f"❌ Error computing transition: {e}", err=True)
        _print_traceback(ctx)


@cli.group('presets')
def presets():
    """Manage effect presets."""
    pass


@presets.command('list')
@click.option('--verbose', '-v', is_flag=True, help='Show preset settings')
@click.pass_context
def list_presets(ctx, verbose: bool):
    """List stored presets.

    Examples:

        camfx presets list
        camfx presets list --verbose
    """
    try:
        store = PresetStore(ctx.obj['config'].presets_file)
        preset_list = store.load()

        if not preset_list:
            click.echo("No presets found")
            return

        click.echo("📋 Presets:")
        click.echo("=" * 40)

        for index, preset in enumerate(preset_list):
            if verbose:
                click.echo(f"\n🎯 {index}. {preset.name} ({preset.mode.display_name})")
                click.echo(f"   {_describe_settings(preset.effective_settings())}")
                if preset.image_path:
                    click.echo(f"   Image: {preset.image_path}")
            else:
                click.echo(f"  {index}. {preset.name:<20} {preset.mode.display_name}")

    except Exception as e:
        click.echo(f"❌ Error listing presets: {e}", err=True)


@presets.command('show')
@click.argument('preset_name')
@click.pass_context
def show_preset(ctx, preset_name: str):
    """Show detailed information about a preset.

    Examples:

        camfx presets show "Strong Blur"
    """
    store = PresetStore(ctx.obj['config'].presets_file)
    try:
        info = store.get_preset_info(preset_name)
        record = info['preset']
        settings = record['settings']

        click.echo(f"🎯 Preset: {record['name']}")
        click.echo("=" * 50)
        click.echo(f"Position:         {info['index']}")
        click.echo(f"Background:       {info['mode_name']}")
        click.echo(f"Skin smoothing:   {settings['skinSmoothingAmount']}")
        click.echo(f"Brightness:       {settings['brightness']}")
        click.echo(f"Contrast:         {settings['contrast']}")
        click.echo(f"Saturation:       {settings['saturation']}")
        click.echo(f"Warmth:           {settings['warmth']}")
        click.echo(f"Sharpness:        {settings['sharpness']}")
        click.echo(f"Mirror video:     {settings['mirrorVideo']}")
        if info['needs_image']:
            click.echo(f"Image:            {record.get('imagePath') or 'installed background'}")
        click.echo(f"File Path:        {info['file_path']}")

    except KeyError:
        click.echo(f"❌ Preset '{preset_name}' not found", err=True)
        click.echo(f"Available presets: {', '.join(store.names())}", err=True)
    except Exception as e:
        click.echo(f"❌ Error showing preset: {e}", err=True)


@presets.command('add')
@click.argument('name')
@effect_options
@click.option('--image', 'image_path', type=click.Path(exists=True, dir_okay=False),
              help='Replacement image for a custom background preset')
@click.pass_context
def add_preset(ctx, name: str, image_path: Optional[str], **kwargs):
    """Create a preset from the current settings plus overrides.

    Examples:

        camfx presets add "Meeting" --mode blur --smoothing 0.4 --warmth 0.2

        camfx presets add "Beach" --mode custom --image ~/beach.jpg

        camfx presets add "Warm Blur" --preset "Strong Blur" --warmth 0.3
    """
    try:
        config = ctx.obj['config']
        store = PresetStore(config.presets_file)

        if kwargs['preset_name']:
            base = store.get(kwargs['preset_name']).effective_settings()
        else:
            base, _ = SettingsStore(config.settings_file).load()

        settings = base.replace(**_settings_overrides(kwargs))
        preset = Preset(
            name=name,
            mode=settings.background_mode,
            settings=settings,
            image_path=image_path if settings.background_mode is BackgroundMode.CUSTOM else None
        )
        store.add(preset)

        click.echo(f"✅ Created preset: {name}")
        click.echo(f"   {_describe_settings(settings)}")

    except FileExistsError:
        click.echo(f"❌ Preset '{name}' already exists", err=True)
    except KeyError:
        click.echo(f"❌ Base preset '{kwargs['preset_name']}' not found", err=True)
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
    except Exception as e:
        click.echo(f"❌ Error creating preset: {e}", err=True)


@presets.command('delete')
@click.argument('preset_name')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@click.pass_context
def delete_preset(ctx, preset_name: str, yes: bool):
    """Delete a preset.

    Examples:

        camfx presets delete "Meeting"
        camfx presets delete "Old" --yes
    """
    try:
        store = PresetStore(ctx.obj['config'].presets_file)
        index = store.index_of(preset_name)

        if not yes:
            if not click.confirm(f"Delete preset '{preset_name}'?"):
                click.echo("❌ Cancelled")
                return

        store.remove(index)
        click.echo(f"✅ Deleted preset: {preset_name}")

    except KeyError:
        click.echo(f"❌ Preset '{preset_name}' not found", err=True)
    except Exception as e:
        click.echo(f"❌ Error deleting preset: {e}", err=True)


@cli.group('backgrounds')
def backgrounds():
    """Manage replacement background images."""
    pass


@backgrounds.command('list')
@click.pass_context
def list_backgrounds(ctx):
    """List background image slots and what is installed."""
    try:
        library = BackgroundLibrary(ctx.obj['config'].backgrounds_dir)
        info = library.get_install_info()

        click.echo(f"🖼️  Backgrounds ({info['install_dir']}):")
        click.echo("=" * 40)
        for value, entry in info['backgrounds'].items():
            if entry['installed']:
                click.echo(f"  ✅ {value:<10} {entry['name']:<14} {entry['size'] / 1024:.0f} KB")
            else:
                click.echo(f"  ❌ {value:<10} {entry['name']:<14} not installed")

    except Exception as e:
        click.echo(f"❌ Error listing backgrounds: {e}", err=True)


@backgrounds.command('install')
@click.argument('mode', type=click.Choice(IMAGE_MODE_CHOICES))
@click.argument('source')
@click.option('--force', is_flag=True, help='Replace an installed image')
@click.pass_context
def install_background(ctx, mode: str, source: str, force: bool):
    """Install a background image from a file or URL.

    Examples:

        camfx backgrounds install included1 ~/Pictures/office.jpg

        camfx backgrounds install custom https://example.com/beach.jpg --force
    """
    try:
        library = BackgroundLibrary(ctx.obj['config'].backgrounds_dir)
        background_mode = BackgroundMode(mode)

        if library.is_installed(background_mode) and not force:
            click.echo(f"✅ {background_mode.display_name} already installed (use --force to replace)")
            return

        click.echo(f"⬇️  Installing {background_mode.display_name} from {source}...")
        path = library.install_background(background_mode, source, force=force)
        click.echo(f"✅ Installed: {path}")

    except AssetError as e:
        click.echo(f"❌ {e}", err=True)
    except Exception as e:
        click.echo(f"❌ Error installing background: {e}", err=True)
        _print_traceback(ctx)


@backgrounds.command('remove')
@click.argument('mode', type=click.Choice(IMAGE_MODE_CHOICES))
@click.pass_context
def remove_background(ctx, mode: str):
    """Remove an installed background image."""
    try:
        library = BackgroundLibrary(ctx.obj['config'].backgrounds_dir)
        library.remove_background(BackgroundMode(mode))
        click.echo(f"✅ Removed background: {mode}")

    except FileNotFoundError as e:
        click.echo(f"❌ {e}", err=True)
    except Exception as e:
        click.echo(f"❌ Error removing background: {e}", err=True)


@cli.command()
@click.option('--json-output', is_flag=True, help='Output in JSON format')
@click.pass_context
def info(ctx, json_output: bool):
    """Show configuration, stored state and system resources.

    Examples:

        camfx info
        camfx info --json-output
    """
    try:
        config = ctx.obj['config']
        settings, custom_image_path = SettingsStore(config.settings_file).load()
        library = BackgroundLibrary(config.backgrounds_dir)
        memory = psutil.virtual_memory()

        status = {
            "version": __version__,
            "config_file": str(config.config_file),
            "config": config.as_dict(),
            "settings": settings.to_record(),
            "custom_image_path": custom_image_path,
            "installed_backgrounds": [mode.value for mode in library.list_installed()],
            "system": {
                "cpu_cores": psutil.cpu_count(logical=True),
                "ram_gb": memory.total / (1024 ** 3),
                "ram_available_gb": memory.available / (1024 ** 3),
                "opencv": cv2.__version__,
            },
        }

        if json_output:
            click.echo(json.dumps(status, indent=2))
            return

        click.echo(f"🖥️  camfx v{__version__}")
        click.echo("=" * 50)
        click.echo(f"Config file:      {status['config_file']}")
        click.echo(f"Presets file:     {config.presets_file}")
        click.echo(f"Settings file:    {config.settings_file}")
        click.echo(f"Backgrounds:      {config.backgrounds_dir}")
        click.echo(f"Transition:       {config.transition_duration:.2f}s")
        click.echo(f"Segmentation:     {config.get('segmentation_model') or 'none configured'}")

        click.echo("\n🎛️  Current settings:")
        click.echo(f"  {_describe_settings(settings)}")
        if custom_image_path:
            click.echo(f"  Custom image: {custom_image_path}")
        installed = status['installed_backgrounds']
        click.echo(f"  Installed backgrounds: {', '.join(installed) if installed else 'none'}")

        system = status['system']
        click.echo("\n💻 System:")
        click.echo(f"  CPU cores:        {system['cpu_cores']}")
        click.echo(f"  RAM:              {system['ram_gb']:.1f} GB ({system['ram_available_gb']:.1f} GB free)")
        click.echo(f"  OpenCV:           {system['opencv']}")

    except Exception as e:
        click.echo(f"❌ Error getting status: {e}", err=True)
        _print_traceback(ctx)


def main():
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\n🛑 Interrupted", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"❌ Unexpected error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
